"""
Facilitator Roster - Static deployment configuration.

Every tracked facilitator, its settlement addresses per chain and the date
from which each address is worth syncing. Changing this file requires a
deploy; nothing mutates it at runtime.
"""

from datetime import datetime, timezone

from transfer_sync.models import Chain, Facilitator, FacilitatorConfig, Token


USDC_BASE_TOKEN = Token(
    address="0x833589fcd6edb6e08f4c7c32d4f71b54bda02913",
    symbol="USDC",
    decimals=6,
)

USDC_POLYGON_TOKEN = Token(
    address="0x3c499c542cef5e3811e1192ce70d8cc03d5c3359",
    symbol="USDC",
    decimals=6,
)

USDC_SOLANA_TOKEN = Token(
    address="EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
    symbol="USDC",
    decimals=6,
)


def _start(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


def _base(address: str, start: datetime, enabled: bool = True) -> FacilitatorConfig:
    return FacilitatorConfig(Chain.BASE, address, USDC_BASE_TOKEN, start, enabled)


def _polygon(address: str, start: datetime, enabled: bool = True) -> FacilitatorConfig:
    return FacilitatorConfig(Chain.POLYGON, address, USDC_POLYGON_TOKEN, start, enabled)


def _solana(address: str, start: datetime, enabled: bool = True) -> FacilitatorConfig:
    return FacilitatorConfig(Chain.SOLANA, address, USDC_SOLANA_TOKEN, start, enabled)


FACILITATORS: tuple[Facilitator, ...] = (
    Facilitator(
        id="coinbase",
        name="Coinbase",
        image="/coinbase.png",
        link="https://docs.cdp.coinbase.com/x402/welcome",
        color="var(--color-primary)",
        addresses=(
            _base("0xdbdf3d8ed80f84c35d01c6c9f9271761bad90ba6", _start(2025, 5, 5)),
            _solana("L54zkaPQFeTn1UsEqieEXBqWrPShiaZEPD7mS5WXfQg", _start(2025, 10, 24)),
        ),
    ),
    Facilitator(
        id="aurracloud",
        name="AurraCloud",
        image="/aurracloud.png",
        link="https://x402-facilitator.aurracloud.com",
        color="var(--color-gray-600)",
        addresses=(
            _base("0x222c4367a2950f3b53af260e111fc3060b0983ff", _start(2025, 10, 5)),
            _base("0xb70c4fe126de09bd292fe3d1e40c6d264ca6a52a", _start(2025, 10, 27)),
        ),
    ),
    Facilitator(
        id="thirdweb",
        name="thirdweb",
        image="/thirdweb.png",
        link="https://portal.thirdweb.com/payments/x402/facilitator",
        color="var(--color-pink-600)",
        addresses=(
            _base("0x80c08de1a05df2bd633cf520754e40fde3c794d3", _start(2025, 10, 7)),
        ),
    ),
    Facilitator(
        id="x402rs",
        name="X402rs",
        image="/x402rs.png",
        link="https://x402.rs",
        color="var(--color-blue-400)",
        addresses=(
            _polygon("0xd8dfc729cbd05381647eb5540d756f4f8ad63eec", _start(2025, 4, 1), enabled=False),
            _base("0xd8dfc729cbd05381647eb5540d756f4f8ad63eec", _start(2024, 12, 5)),
            _base("0x76eee8f0acabd6b49f1cc4e9656a0c8892f3332e", _start(2025, 10, 26)),
            _base("0x97d38aa5de015245dcca76305b53abe6da25f6a5", _start(2025, 10, 24)),
            _base("0x0168f80e035ea68b191faf9bfc12778c87d92008", _start(2025, 10, 24)),
            _base("0x5e437bee4321db862ac57085ea5eb97199c0ccc5", _start(2025, 10, 24)),
            _base("0xc19829b32324f116ee7f80d193f99e445968499a", _start(2025, 10, 26)),
        ),
    ),
    Facilitator(
        id="payAI",
        name="PayAI",
        image="/payai.png",
        link="https://payai.network",
        color="var(--color-purple-600)",
        addresses=(
            _solana("2wKupLR9q6wXYppw8Gr2NvWxKBUqm4PPJKkQfoxHDBg4", _start(2025, 7, 1)),
            _base("0xc6699d2aada6c36dfea5c248dd70f9cb0235cb63", _start(2025, 5, 18)),
        ),
    ),
    Facilitator(
        id="corbits",
        name="Corbits",
        image="/corbits.png",
        link="https://corbits.dev",
        color="var(--color-orange-600)",
        addresses=(
            _solana("AepWpq3GQwL8CeKMtZyKtKPa7W91Coygh3ropAJapVdU", _start(2025, 9, 21)),
        ),
    ),
    Facilitator(
        id="dexter",
        name="Dexter",
        image="/dexter.svg",
        link="https://facilitator.dexter.cash",
        color="var(--color-orange-600)",
        addresses=(
            _solana("DEXVS3su4dZQWTvvPnLDJLRK1CeeKG6K3QqdzthgAkNV", _start(2025, 10, 26)),
        ),
    ),
    Facilitator(
        id="daydreams",
        name="Daydreams",
        image="/router-logo-small.png",
        link="https://facilitator.daydreams.systems",
        color="var(--color-yellow-600)",
        addresses=(
            # Checksummed in the upstream listing, the registry lowercases it
            _base("0x279e08f711182c79Ba6d09669127a426228a4653", _start(2025, 10, 16)),
            _solana("DuQ4jFMmVABWGxabYHFkGzdyeJgS1hp4wrRuCtsJgT9a", _start(2025, 10, 16)),
        ),
    ),
    Facilitator(
        id="mogami",
        name="Mogami",
        image="/mogami.png",
        link="https://mogami.tech/",
        color="var(--color-green-600)",
        addresses=(
            _base("0xfe0920a0a7f0f8a1ec689146c30c3bbef439bf8a", _start(2025, 10, 24)),
        ),
    ),
    Facilitator(
        id="openx402",
        name="OpenX402",
        image="/openx402.png",
        link="https://open.x402.host",
        color="var(--color-blue-100)",
        addresses=(
            _base("0x97316fa4730bc7d3b295234f8e4d04a0a4c093e8", _start(2025, 10, 16)),
            _base("0x97db9b5291a218fc77198c285cefdc943ef74917", _start(2025, 10, 16)),
            _solana("5xvht4fYDs99yprfm4UeuHSLxMBRpotfBtUCQqM3oDNG", _start(2025, 10, 16)),
        ),
    ),
    Facilitator(
        id="ainalyst",
        name="AInalyst",
        image="/ainalyst.png",
        link="https://facilitator.ainalyst-api.xyz",
        color="var(--color-purple-200)",
        addresses=(
            _base("0x109f3d0ff7ea61b03df26ca7ef0c41765d85ee0b", _start(2025, 10, 29)),
        ),
    ),
)
