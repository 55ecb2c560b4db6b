"""
Sheet loading tests: number parsing, header mapping, local files and URLs.
"""
import pandas as pd
import pytest
import requests

from core import data as data_mod
from core.data import (
    load_sales_data,
    normalize_header,
    parse_number_any,
    round_half_up,
    parse_sales_frame,
    unique_sellers,
)
from core.errors import LoadFailure


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("R$ 1.234,56", 1234.56),
        ("1,5", 1.5),
        ("1234.5", 1234.5),
        ("-R$ 10,00", -10.0),
        ("1.234.567", 1234567.0),
        ("1,234.50", 1234.5),
        ("R$ 58.900", 58900.0),
        ("58.900", 58900.0),
        ("1.5", 1.5),
        (7, 7.0),
        ("", None),
        ("abc", None),
        (None, None),
    ],
)
def test_parse_number_any(raw, expected) -> None:
    assert parse_number_any(raw) == expected


def test_normalize_header_strips_accents_and_case() -> None:
    assert normalize_header("  Lucro Líquido ") == "lucro liquido"
    assert normalize_header("Ano/Mod") == "ano/mod"
    assert normalize_header(None) == ""


def _raw(rows):
    return pd.DataFrame(rows)


def test_parse_sales_frame_skips_title_rows_and_blank_sellers() -> None:
    raw = _raw(
        [
            ["Relatório de vendas", "", "", "", ""],
            ["Dias", "Valor Venda", "Lucro Líquido", "Vendedor", "Ano/Mod"],
            ["10", "R$ 1.000,00", "R$ 100,00", "Ana", "2019/2020"],
            ["", "R$ 500,00", "", "", ""],
            ["x", "R$ 2.000,00", "R$ 50,00", "Repasse", "2018/2018"],
        ]
    )
    df = parse_sales_frame(raw)
    assert list(df.columns) == ["dias", "valor_venda", "lucro_liquido", "vendedor", "ano_mod"]
    assert len(df) == 2
    assert df.loc[0, "valor_venda"] == 1000.0
    assert df.loc[0, "dias"] == 10.0
    assert pd.isna(df.loc[1, "dias"])
    assert unique_sellers(df) == ["Ana", "Repasse"]


def test_parse_sales_frame_optional_columns_default_to_na() -> None:
    raw = _raw([["Vendedor", "Dias", "Valor Venda"], ["Ana", "3", "100"]])
    df = parse_sales_frame(raw)
    assert pd.isna(df.loc[0, "lucro_liquido"])
    assert pd.isna(df.loc[0, "ano_mod"])


def test_parse_sales_frame_missing_required_columns() -> None:
    raw = _raw([["Vendedor", "Dias"], ["Ana", "3"]])
    with pytest.raises(LoadFailure, match="valor_venda"):
        parse_sales_frame(raw)


def test_parse_sales_frame_without_seller_column() -> None:
    raw = _raw([["Dias", "Valor"], ["3", "100"]])
    with pytest.raises(LoadFailure, match="Vendedor"):
        parse_sales_frame(raw)


def test_unique_sellers_keeps_first_encounter_order() -> None:
    df = pd.DataFrame({"vendedor": ["B", "A", "B", "Repasse", "A"]})
    assert unique_sellers(df) == ["B", "A", "Repasse"]


def test_load_sales_data_from_csv(tmp_path) -> None:
    path = tmp_path / "vendas.csv"
    path.write_text(
        "Dias;Valor Venda;Lucro Líquido;Vendedor;Ano/Mod\n"
        "10;R$ 50.000,00;R$ 5.000,00;Bruno;2019/2020\n"
        "0;R$ 40.000,00;R$ 3.000,00;Ana;2020/2021\n"
        "4;R$ 30.000,00;R$ 1.000,00;Bruno;2018/2019\n",
        encoding="utf-8",
    )
    result = load_sales_data(str(path))
    assert result.sellers == ["Bruno", "Ana"]
    assert len(result.records) == 3
    assert result.records["valor_venda"].sum() == pytest.approx(120000.0)


def test_load_sales_data_missing_file(tmp_path) -> None:
    with pytest.raises(LoadFailure, match="não encontrado"):
        load_sales_data(str(tmp_path / "nope.csv"))


class _FakeResponse:
    def __init__(self, text: str, status: int = 200):
        self.text = text
        self.content = text.encode("utf-8")
        self.status_code = status
        self.headers = {"content-type": "text/csv"}
        self.encoding = "utf-8"

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error")


def test_load_sales_data_from_url(monkeypatch) -> None:
    body = "Dias,Valor Venda,Lucro Liquido,Vendedor,Ano/Mod\n5,1000,100,Ana,2020\n2,300,0,Repasse,2019\n"
    calls = []

    def fake_get(url, timeout):
        calls.append((url, timeout))
        return _FakeResponse(body)

    monkeypatch.setattr(data_mod.requests, "get", fake_get)
    result = load_sales_data("https://example.com/vendas.csv")
    assert result.sellers == ["Ana", "Repasse"]
    assert len(calls) == 1

    load_sales_data("https://example.com/vendas.csv")
    assert len(calls) == 2


def test_load_sales_data_http_error(monkeypatch) -> None:
    monkeypatch.setattr(data_mod.requests, "get", lambda url, timeout: _FakeResponse("", status=500))
    with pytest.raises(LoadFailure, match="Falha ao buscar"):
        load_sales_data("https://example.com/vendas.csv")


def test_load_sales_data_timeout(monkeypatch) -> None:
    def slow(url, timeout):
        raise requests.exceptions.Timeout()

    monkeypatch.setattr(data_mod.requests, "get", slow)
    with pytest.raises(LoadFailure, match="Tempo esgotado"):
        load_sales_data("https://example.com/vendas.csv")


@pytest.mark.parametrize(
    "value, ndigits, expected",
    [
        (7.25, 1, 7.3),
        (0.35, 1, 0.3),
        (2.5, 0, 3.0),
        (None, 1, None),
    ],
)
def test_round_half_up_uses_exact_float_value(value, ndigits, expected) -> None:
    assert round_half_up(value, ndigits) == expected
