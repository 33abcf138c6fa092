from src.pipeline.runner import AnalysisResult, ShootingAnalysisPipeline, run_shooting_analysis

__all__ = [
    "AnalysisResult",
    "ShootingAnalysisPipeline",
    "run_shooting_analysis",
]
