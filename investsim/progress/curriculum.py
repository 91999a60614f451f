from __future__ import annotations

from typing import List

from .models import LearningModule, Lesson


def default_curriculum() -> List[LearningModule]:
    """Fresh copy of the built-in learning modules, all lessons unlocked."""
    return [
        LearningModule(
            id="basics",
            title="Investment Basics",
            lessons=[
                Lesson("1", "What is Investing?", "Introduction"),
                Lesson("2", "Types of Investments", "Stocks, Bonds, ETFs"),
                Lesson("3", "Risk vs Reward", "Understanding risk"),
                Lesson("4", "Building a Portfolio", "Diversification"),
            ],
        ),
        LearningModule(
            id="stocks",
            title="Stock Market",
            lessons=[
                Lesson("5", "How Stocks Work", "Company ownership"),
                Lesson("6", "Reading Stock Charts", "Price movements"),
                Lesson("7", "Buying vs Selling", "Market orders"),
                Lesson("8", "Market Timing", "When to trade"),
            ],
        ),
        LearningModule(
            id="crypto",
            title="Cryptocurrency",
            lessons=[
                Lesson("9", "Understanding Bitcoin", "Digital currency"),
                Lesson("10", "Blockchain Basics", "How it works"),
                Lesson("11", "Crypto Volatility", "High risk"),
            ],
        ),
        LearningModule(
            id="commodities",
            title="Commodities",
            lessons=[
                Lesson("12", "Gold as Investment", "Precious metals"),
                Lesson("13", "Oil Trading", "Energy commodities"),
                Lesson("14", "Commodity Futures", "Futures contracts"),
            ],
        ),
    ]
