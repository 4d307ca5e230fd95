import asyncio

import pytest
import pytest_asyncio
from aiocache import SimpleMemoryCache
from aiohttp import web
from aiohttp.test_utils import TestServer

from config.settings import (
    DexScreenerSettings,
    FairScaleSettings,
    HeliusSettings,
    JupiterSettings,
    RugCheckSettings,
)
from tests.conftest import START
from tokentrust.schemas import HolderSample, RiskLevel, Tier
from tokentrust.services.providers.dexscreener import DexScreenerClient, aggregate_pairs
from tokentrust.services.providers.fairscale import FairScaleClient
from tokentrust.services.providers.helius import (
    HeliusClient,
    build_holder_sample,
    classify_lp_holders,
    resolve_update_authority,
)
from tokentrust.services.providers.http import ConfigurationError, ProviderFailure
from tokentrust.services.providers.jupiter import JupiterClient
from tokentrust.services.providers.rugcheck import RugCheckClient, classify_risk_level

MINT = "So11111111111111111111111111111111111111112"


async def _fairscale_handler(request: web.Request) -> web.Response:
    if request.headers.get("fairkey") != "secret":
        return web.json_response({"error": "unauthorized"}, status=401)
    wallet = request.query["wallet"]
    if wallet == "unknown":
        return web.json_response({"error": "not found"}, status=404)
    if wallet == "broken":
        return web.Response(text="boom", status=500)
    if wallet == "slow":
        await asyncio.sleep(1)
    if request.path == "/fairScore":
        return web.json_response({"wallet": wallet, "score": 731.6})
    if request.path == "/walletScore":
        return web.json_response({"wallet": wallet, "score": 58})
    return web.json_response(
        {
            "wallet": wallet,
            "score": 73.2,
            "badges": [
                {"id": "early", "label": "Early Adopter", "tier": "gold"},
                {"id": "odd", "tier": "diamond"},
                {"label": "no id"},
            ],
        }
    )


@pytest_asyncio.fixture
async def fairscale_server():
    app = web.Application()
    app.router.add_get("/score", _fairscale_handler)
    app.router.add_get("/fairScore", _fairscale_handler)
    app.router.add_get("/walletScore", _fairscale_handler)
    server = TestServer(app)
    await server.start_server()
    yield server
    await server.close()


def _fairscale(server, api_key="secret", timeout=5.0):
    settings = FairScaleSettings(
        api_key=api_key, base_url=str(server.make_url("/")), request_timeout=timeout
    )
    return FairScaleClient(settings)


@pytest.mark.asyncio
async def test_fairscale_detailed_profile(fairscale_server):
    async with _fairscale(fairscale_server) as client:
        profile = await client.fetch_detailed_profile("wallet-1")

    assert profile.wallet == "wallet-1"
    assert profile.decimal_score == pytest.approx(73.2)
    assert [(badge.id, badge.tier) for badge in profile.badges] == [
        ("early", Tier.GOLD),
        ("odd", Tier.BRONZE),
    ]


@pytest.mark.asyncio
async def test_fairscale_unknown_wallet_is_none(fairscale_server):
    async with _fairscale(fairscale_server) as client:
        assert await client.fetch_detailed_profile("unknown") is None
        assert await client.fetch_quick_score("unknown") is None


@pytest.mark.asyncio
async def test_fairscale_server_error_is_provider_failure(fairscale_server):
    async with _fairscale(fairscale_server) as client:
        with pytest.raises(ProviderFailure) as excinfo:
            await client.fetch_detailed_profile("broken")
        assert await client.fetch_quick_score("broken") is None

    assert excinfo.value.status == 500
    assert excinfo.value.provider == "fairscale"


@pytest.mark.asyncio
async def test_fairscale_timeout_is_provider_failure(fairscale_server):
    async with _fairscale(fairscale_server, timeout=0.2) as client:
        with pytest.raises(ProviderFailure):
            await client.fetch_detailed_profile("slow")


@pytest.mark.asyncio
async def test_fairscale_quick_score_rounds(fairscale_server):
    async with _fairscale(fairscale_server) as client:
        assert await client.fetch_quick_score("wallet-1") == 732


@pytest.mark.asyncio
async def test_fairscale_wallet_score(fairscale_server):
    async with _fairscale(fairscale_server) as client:
        assert await client.fetch_wallet_score("wallet-1") == 58
        assert await client.fetch_wallet_score("unknown") is None
        assert await client.fetch_wallet_score("broken") is None


@pytest.mark.asyncio
async def test_fairscale_missing_key_is_configuration_error(fairscale_server):
    async with _fairscale(fairscale_server, api_key="") as client:
        with pytest.raises(ConfigurationError):
            await client.fetch_detailed_profile("wallet-1")
        with pytest.raises(ConfigurationError):
            await client.fetch_quick_score("wallet-1")


ASSET = {
    "id": MINT,
    "content": {
        "metadata": {"name": "Wrapped SOL", "symbol": "SOL"},
        "links": {"image": "https://example.org/sol.png"},
    },
    "authorities": [
        {"address": "Meta111", "scopes": ["metadata"]},
        {"address": "Full111", "scopes": ["full"]},
    ],
    "token_info": {"decimals": 9, "supply": 1000, "mint_authority": "MintAuth"},
}


async def _helius_handler(request: web.Request) -> web.Response:
    if request.query.get("api-key") != "secret":
        return web.Response(status=401)
    body = await request.json()
    if body["method"] == "getAsset":
        if body["params"]["id"] == "Junk":
            return web.json_response({"jsonrpc": "2.0", "result": {"id": "Junk", "content": "junk"}})
        if body["params"]["id"] != MINT:
            return web.json_response({"jsonrpc": "2.0", "error": {"code": -32000, "message": "Asset Not Found"}})
        return web.json_response({"jsonrpc": "2.0", "result": ASSET})
    if body["method"] == "getTokenAccounts":
        accounts = [
            {"owner": "small", "amount": 100},
            {"owner": "big", "amount": 300},
            {"owner": "empty", "amount": 0},
        ]
        return web.json_response({"jsonrpc": "2.0", "result": {"token_accounts": accounts}})
    return web.json_response({"jsonrpc": "2.0", "error": {"code": -32601, "message": "Method not found"}})


@pytest_asyncio.fixture
async def helius_client():
    app = web.Application()
    app.router.add_post("/", _helius_handler)
    server = TestServer(app)
    await server.start_server()
    client = HeliusClient(HeliusSettings(api_key="secret", rpc_url=str(server.make_url("/"))))
    yield client
    await client.close()
    await server.close()


@pytest.mark.asyncio
async def test_helius_metadata(helius_client):
    metadata = await helius_client.fetch_token_metadata(MINT)

    assert metadata.name == "Wrapped SOL"
    assert metadata.symbol == "SOL"
    assert metadata.decimals == 9
    assert metadata.update_authority == "Full111"
    assert metadata.mint_authority == "MintAuth"
    assert metadata.freeze_authority is None


@pytest.mark.asyncio
async def test_helius_unknown_asset_is_none(helius_client):
    assert await helius_client.fetch_token_metadata("Unknown") is None


@pytest.mark.asyncio
async def test_helius_malformed_asset_is_provider_failure(helius_client):
    with pytest.raises(ProviderFailure) as excinfo:
        await helius_client.fetch_token_metadata("Junk")

    assert excinfo.value.provider == "helius"


@pytest.mark.asyncio
async def test_helius_top_holders(helius_client):
    holders = await helius_client.fetch_top_holders(MINT, limit=20)

    assert [holder.owner for holder in holders] == ["big", "small"]
    assert [holder.percentage for holder in holders] == [75.0, 25.0]


@pytest.mark.asyncio
async def test_helius_rpc_error_is_provider_failure(helius_client):
    with pytest.raises(ProviderFailure):
        await helius_client.rpc_call("getNothing")


@pytest.mark.asyncio
async def test_helius_missing_key_is_configuration_error():
    client = HeliusClient(HeliusSettings(api_key=None))

    with pytest.raises(ConfigurationError):
        await client.fetch_token_metadata(MINT)


@pytest.mark.parametrize(
    "asset,expected",
    [
        ({"authorities": [{"address": "A", "scopes": ["metadata"]}, {"address": "B", "scopes": ["full"]}]}, "B"),
        ({"authorities": [{"address": "A", "scopes": ["metadata"]}]}, "A"),
        ({"mint_extensions": {"metadata": {"update_authority": "Ext"}}}, "Ext"),
        ({"authorities": [], "mint_extensions": {"metadata": {"updateAuthority": "Ext2"}}}, "Ext2"),
        ({}, None),
    ],
)
def test_resolve_update_authority(asset, expected):
    assert resolve_update_authority(asset) == expected


def test_build_holder_sample_skips_bad_balances():
    holders = build_holder_sample(
        [{"owner": "a", "amount": "50"}, {"owner": "b", "amount": "oops"}, {"owner": None, "amount": 5}, "junk"]
    )

    assert holders == [HolderSample(owner="a", amount=50.0, percentage=100.0)]


def test_classify_lp_holders():
    holders = [
        HolderSample(owner="whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc", amount=40.0, percentage=40.0),
        HolderSample(owner="user", amount=35.0, percentage=35.0),
        HolderSample(owner="LBUZKhRxPF3XUpBCjp4YzTKgLccjZhTSDM9YuVaPwxo", amount=25.0, percentage=25.0),
    ]

    breakdown = classify_lp_holders(holders)

    assert [holder.owner for holder in breakdown.holders] == ["user"]
    assert [vault.dex for vault in breakdown.lp_vaults] == ["Orca Whirlpool", "Meteora DLMM"]
    assert breakdown.lp_supply_percent == pytest.approx(65.0)


PAIRS = [
    {"dexId": "orca", "liquidity": {"usd": 1000}, "volume": {"h24": 500}, "priceUsd": "1.5", "fdv": 10, "marketCap": 8},
    {"dexId": "raydium", "liquidity": {"usd": 3000}, "volume": {"h24": 1500}, "priceUsd": "1.6", "fdv": 20, "marketCap": 16},
]


def test_aggregate_pairs_uses_deepest_pool():
    snapshot = aggregate_pairs(MINT, PAIRS, fetched_at=START)

    assert snapshot.total_liquidity_usd == 4000
    assert snapshot.volume_24h == 2000
    assert snapshot.volume_liquidity_ratio == pytest.approx(0.5)
    assert snapshot.pool_count == 2
    assert snapshot.primary_dex == "raydium"
    assert snapshot.price_usd == pytest.approx(1.6)
    assert snapshot.fdv == 20


def test_aggregate_pairs_without_pairs():
    assert aggregate_pairs(MINT, [], fetched_at=START) is None


@pytest_asyncio.fixture
async def market_server():
    hits = {"profiles": 0, "verified": 0}

    async def pairs(request: web.Request) -> web.Response:
        if request.match_info["mint"] == "missing":
            return web.json_response({"error": "no pairs"}, status=404)
        if request.match_info["mint"] == "broken":
            return web.Response(status=502)
        if request.match_info["mint"] == "garbled":
            return web.json_response([{"dexId": 42, "liquidity": {"usd": 10}}])
        return web.json_response(PAIRS)

    async def profiles(request: web.Request) -> web.Response:
        hits["profiles"] += 1
        return web.json_response(
            [
                {"chainId": "solana", "tokenAddress": "NewSol1", "icon": "https://example.org/1.png"},
                {"chainId": "base", "tokenAddress": "0xabc"},
                {"chainId": "solana", "tokenAddress": "NewSol2"},
            ]
        )

    async def report(request: web.Request) -> web.Response:
        if request.match_info["mint"] == "missing":
            return web.Response(status=404)
        if request.match_info["mint"] == "bad-score":
            return web.json_response({"score": 500, "risks": [{"name": "Mutable", "score": "high"}]})
        if request.match_info["mint"] == "bad-name":
            return web.json_response({"risks": [{"name": 42}]})
        return web.json_response(
            {"score": 450, "risks": [{"name": "Low Liquidity", "description": "thin", "level": "warn", "score": 100}]}
        )

    async def verified(request: web.Request) -> web.Response:
        hits["verified"] += 1
        return web.json_response([{"id": MINT}, {"id": "Other"}])

    async def recent(request: web.Request) -> web.Response:
        return web.json_response([{"id": "Fresh1", "name": "Fresh", "symbol": "FRSH", "icon": "https://example.org/f.png"}])

    app = web.Application()
    app.router.add_get("/tokens/v1/solana/{mint}", pairs)
    app.router.add_get("/token-profiles/latest/v1", profiles)
    app.router.add_get("/v1/tokens/{mint}/report/summary", report)
    app.router.add_get("/tokens/v2/tag", verified)
    app.router.add_get("/tokens/v2/recent", recent)
    server = TestServer(app)
    await server.start_server()
    server.hits = hits
    yield server
    await server.close()


@pytest.mark.asyncio
async def test_dexscreener_liquidity(market_server):
    settings = DexScreenerSettings(base_url=str(market_server.make_url("/")))
    async with DexScreenerClient(settings, clock=lambda: START) as client:
        snapshot = await client.fetch_liquidity(MINT)
        missing = await client.fetch_liquidity("missing")
        with pytest.raises(ProviderFailure):
            await client.fetch_liquidity("broken")

    assert snapshot.total_liquidity_usd == 4000
    assert snapshot.fetched_at == START
    assert missing is None


@pytest.mark.asyncio
async def test_dexscreener_malformed_pairs_are_provider_failure(market_server):
    settings = DexScreenerSettings(base_url=str(market_server.make_url("/")))
    async with DexScreenerClient(settings, clock=lambda: START) as client:
        with pytest.raises(ProviderFailure) as excinfo:
            await client.fetch_liquidity("garbled")

    assert excinfo.value.provider == "dexscreener"


@pytest.mark.asyncio
async def test_dexscreener_profiles_are_hot_cached(market_server):
    settings = DexScreenerSettings(base_url=str(market_server.make_url("/")))
    async with DexScreenerClient(settings, hot_cache=SimpleMemoryCache()) as client:
        first = await client.fetch_latest_profiles()
        second = await client.fetch_latest_profiles(limit=1)

    assert [profile.mint for profile in first] == ["NewSol1", "NewSol2"]
    assert [profile.mint for profile in second] == ["NewSol1"]
    assert market_server.hits["profiles"] == 1


@pytest.mark.asyncio
async def test_rugcheck_report(market_server):
    settings = RugCheckSettings(base_url=str(market_server.make_url("/")))
    async with RugCheckClient(settings, clock=lambda: START) as client:
        report = await client.fetch_report(MINT)
        missing = await client.fetch_report("missing")

    assert report.risk_level is RiskLevel.WARNING
    assert report.risk_count == 1
    assert report.risks[0].name == "Low Liquidity"
    assert missing is None


@pytest.mark.asyncio
@pytest.mark.parametrize("mint", ["bad-score", "bad-name"])
async def test_rugcheck_malformed_report_is_provider_failure(market_server, mint):
    settings = RugCheckSettings(base_url=str(market_server.make_url("/")))
    async with RugCheckClient(settings, clock=lambda: START) as client:
        with pytest.raises(ProviderFailure) as excinfo:
            await client.fetch_report(mint)

    assert excinfo.value.provider == "rugcheck"


@pytest.mark.parametrize(
    "score,level",
    [(700, RiskLevel.GOOD), (400, RiskLevel.WARNING), (1, RiskLevel.DANGER), (0, RiskLevel.UNKNOWN)],
)
def test_classify_risk_level(score, level):
    assert classify_risk_level(score) is level


@pytest.mark.asyncio
async def test_jupiter_verified_and_recent(market_server):
    settings = JupiterSettings(base_url=str(market_server.make_url("/")))
    async with JupiterClient(settings, hot_cache=SimpleMemoryCache()) as client:
        assert await client.is_verified(MINT) is True
        assert await client.is_verified("Nope") is False
        recent = await client.fetch_recent_tokens(limit=5)

    assert market_server.hits["verified"] == 1
    assert [(token.mint, token.symbol, token.logo_uri) for token in recent] == [
        ("Fresh1", "FRSH", "https://example.org/f.png")
    ]


@pytest.mark.asyncio
async def test_jupiter_outage_degrades_to_unverified():
    app = web.Application()
    server = TestServer(app)
    await server.start_server()
    try:
        settings = JupiterSettings(base_url=str(server.make_url("/")))
        async with JupiterClient(settings, hot_cache=SimpleMemoryCache()) as client:
            assert await client.is_verified(MINT) is False
            assert await client.fetch_recent_tokens() == []
    finally:
        await server.close()
