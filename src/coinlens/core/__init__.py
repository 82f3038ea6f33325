"""Batch market analysis."""

from coinlens.core.analyzer import AnalysisResult, AnalysisStats, MarketAnalyzer

__all__ = ["AnalysisResult", "AnalysisStats", "MarketAnalyzer"]
