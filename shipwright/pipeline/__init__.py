from .analyzer import ProjectAnalyzer, fallback_analysis, parse_analysis
from .orchestrator import PipelineOrchestrator, branch_name_for, pr_title_for

__all__ = [
    "PipelineOrchestrator",
    "ProjectAnalyzer",
    "branch_name_for",
    "fallback_analysis",
    "parse_analysis",
    "pr_title_for",
]
