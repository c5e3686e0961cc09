"""Scoring policy: every keyword table and threshold the evaluator uses.

The evaluator never hard-codes a number or a word list. Changing a threshold
means publishing a new policy (bump ``POLICY_VERSION``) so historical
decisions can be reproduced against the policy that made them.
"""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Tuple

POLICY_VERSION = "2"

PRODUCT_KEYWORDS: Tuple[str, ...] = (
    "app", "platform", "tool", "service", "sdk", "engine", "cli", "api",
    "dashboard", "server", "client", "framework", "protocol", "system",
    "network", "exchange", "wallet", "indexer", "payments",
)

# Matched at the start of a word, so "awesome-" catches "awesome-rust".
JUNK_PATTERNS: Tuple[str, ...] = (
    "awesome-", "awesome list", "cheatsheet", "cheat-sheet", "roadmap",
    "course", "tutorial", "learn-", "learning-", "my-first", "test-",
    "demo-", "example-", "hello-world", "portfolio", "resume", "dotfiles",
    "homework", "assignment", "boilerplate", "work in progress", "wip:",
    "(wip)", "[wip]",
)

BLOCKCHAIN_KEYWORDS: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "solana": ("solana", "sol", "spl", "metaplex", "anchor"),
    "ethereum": ("ethereum", "eth", "evm", "erc20", "erc721"),
    "base": ("base", "basescan"),
    "polygon": ("polygon", "matic"),
    "cosmos": ("cosmos", "cosmwasm"),
    "bitcoin": ("bitcoin", "btc", "lightning"),
})

CONTRACT_LANGUAGES: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "Rust": ("rust", "cargo"),
    "Solidity": ("solidity", "hardhat", "foundry"),
    "Move": ("move", "aptos", "sui"),
})

WEB3_FRAMEWORKS: Tuple[str, ...] = (
    "anchor", "hardhat", "foundry", "truffle", "brownie", "cosmwasm",
    "near-sdk", "ink",
)

CATEGORY_KEYWORDS: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "crypto": ("crypto", "web3", "blockchain", "onchain", "on-chain"),
    "defi": ("defi", "dex", "amm", "swap", "liquidity", "yield", "lending", "vault"),
    "wallet": ("wallet", "custody", "multisig", "signer"),
    "nft": ("nft", "erc721", "erc1155", "metaplex"),
    "mev": ("mev", "flashbots", "searcher", "arbitrage"),
    "infra": (
        "rpc", "indexer", "validator", "oracle", "docker", "kubernetes",
        "k8s", "serverless", "devops", "monitoring", "observability",
    ),
    "dao": ("dao", "governance", "voting"),
    "bridge": ("bridge", "crosschain", "cross-chain", "interop"),
    "privacy": ("privacy", "zk", "zero-knowledge", "zkp"),
    "ai": (
        "ai", "ml", "llm", "gpt", "machine-learning", "neural", "agent",
        "chatbot", "rag", "transformer",
    ),
    "games": ("game", "gaming", "unity", "unreal", "godot", "phaser", "multiplayer", "gamefi"),
})

CI_TOPICS: Tuple[str, ...] = ("ci", "github-actions", "gitlab-ci", "ci-cd", "cicd", "continuous-integration")

TEST_KEYWORDS: Tuple[str, ...] = ("test", "testing", "tested", "tdd", "pytest", "jest", "coverage")


@dataclass(frozen=True)
class ScoringPolicy:
    """Immutable set of thresholds and vocabularies used to score repos and builders."""
    version: str = POLICY_VERSION

    # Repository gates
    max_inactive_days: int = 120
    min_size_kb: int = 10
    unvalidated_after_days: int = 30
    require_category: bool = True
    min_product_score: int = 30
    min_final_score: int = 50
    max_repo_stars: int = 5000

    # Derived flags
    hot_days: int = 7
    active_days: int = 30
    early_stage_days: int = 90
    underrated_min_score: int = 70
    underrated_max_stars: int = 100

    # Coin-worthiness
    coin_worthy_score: int = 70
    coin_worthy_min_stars: int = 5

    # Builders
    min_quality_repos: int = 2
    min_followers: int = 20
    max_followers: int = 2000

    product_keywords: Tuple[str, ...] = PRODUCT_KEYWORDS
    junk_patterns: Tuple[str, ...] = JUNK_PATTERNS
    blockchain_keywords: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: BLOCKCHAIN_KEYWORDS)
    contract_languages: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: CONTRACT_LANGUAGES)
    web3_frameworks: Tuple[str, ...] = WEB3_FRAMEWORKS
    category_keywords: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: CATEGORY_KEYWORDS)
    ci_topics: Tuple[str, ...] = CI_TOPICS
    test_keywords: Tuple[str, ...] = TEST_KEYWORDS

    @property
    def categories(self) -> Tuple[str, ...]:
        return tuple(self.category_keywords)


DEFAULT_POLICY = ScoringPolicy()
