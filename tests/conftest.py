"""
Pytest configuration for pycovariates tests.
"""
import sys
from pathlib import Path

import pandas as pd
import pytest

# Add the project root to Python path so tests can import pycovariates without installation
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


@pytest.fixture
def mutation_events() -> pd.DataFrame:
    """Long-format mutation calls: several calls per gene for some samples."""
    return pd.DataFrame(
        {
            "sample_id": ["S1", "S1", "S1", "S2", "S2", "S3"],
            "gene": ["TP53", "TP53", "KRAS", "TP53", "EGFR", "KRAS"],
            "effect": [
                "Missense_Mutation",
                "Nonsense_Mutation",
                "Missense_Mutation",
                "Missense_Mutation",
                "In_Frame_Del",
                "Missense_Mutation",
            ],
            "vaf": [0.25, 0.5, 0.1, 0.4, 0.3, 0.2],
        }
    )


@pytest.fixture
def clinical_covariates() -> pd.DataFrame:
    """Clinical table sharing S2 and S3 with the mutation events, plus S4."""
    return pd.DataFrame(
        {
            "sample_id": ["S2", "S3", "S4"],
            "age": [61.0, 55.0, 70.0],
            "sex": ["F", "M", "F"],
            "site": ["A", "B", "A"],
            "response": [1, 0, 1],
        }
    )
