from .visualisation import format_biomarker_summary, summarise_biomarker_matrix

__all__ = [
    "format_biomarker_summary",
    "summarise_biomarker_matrix",
]
