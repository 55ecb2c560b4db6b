"""
Shared fixtures.
- sample_records: the reference four-row scenario (A, A, B, Repasse).
- loaded_state: a DashboardState already loaded with sample_records.
- client: FastAPI TestClient bound to loaded_state (no startup load).
"""
import pandas as pd
import pytest
from fastapi.testclient import TestClient

from core.data import LoadResult, unique_sellers
from core.state import DashboardState


def make_records(rows):
    df = pd.DataFrame(rows, columns=["dias", "valor_venda", "lucro_liquido", "vendedor", "ano_mod"])
    for col in ["dias", "valor_venda", "lucro_liquido"]:
        df[col] = pd.to_numeric(df[col], errors="coerce").astype("float64")
    df["vendedor"] = df["vendedor"].astype("string")
    df["ano_mod"] = df["ano_mod"].astype("string")
    return df


def make_result(rows):
    records = make_records(rows)
    return LoadResult(records=records, sellers=unique_sellers(records))


@pytest.fixture
def sample_records() -> pd.DataFrame:
    return make_records(
        [
            (10, 1000.0, 100.0, "A", "2019/2020"),
            (0, 2000.0, 150.0, "A", "2020/2021"),
            (5, 1500.0, 120.0, "B", "2019/2020"),
            (2, 100.0, 0.0, "Repasse", "2018/2018"),
        ]
    )


@pytest.fixture
def loaded_state(sample_records: pd.DataFrame) -> DashboardState:
    state = DashboardState()
    state.reload(lambda: LoadResult(records=sample_records, sellers=unique_sellers(sample_records)))
    return state


@pytest.fixture
def client(loaded_state: DashboardState):
    from api.main import app, get_state

    app.dependency_overrides[get_state] = lambda: loaded_state
    yield TestClient(app)
    app.dependency_overrides.clear()
