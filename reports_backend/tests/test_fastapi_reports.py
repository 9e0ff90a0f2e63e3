import io

import pytest
from fastapi.testclient import TestClient
from openpyxl import load_workbook

from reports_backend.fastapi_app import API_PREFIX, app
from reports_backend.modules.reports import fastapi_reports
from reports_backend.modules.reports.report_service import (
    DataSourceConnectionError,
    QueryError,
)

FECHAS = {"fecha_inicio": "2024-01-01", "fecha_fin": "2024-01-31"}


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def calls(monkeypatch):
    """Record procedure calls and answer with whatever the test puts in calls['result']."""
    state = {"calls": [], "result": []}

    def fake_call(target, procedures, params, schema=None, connection=None):
        state["calls"].append({"target": target, "procedures": tuple(procedures), "params": dict(params)})
        result = state["result"]
        if isinstance(result, Exception):
            raise result
        return result

    monkeypatch.setattr(fastapi_reports.data_service, "call_procedure", fake_call)
    return state


def url(path):
    return f"{API_PREFIX}{path}"


def test_missing_dates(client, calls):
    response = client.post(url("/obtener-registros"), json={"fecha_inicio": "2024-01-01"})
    assert response.status_code == 400
    assert response.json() == {"error": "Las fechas son requeridas"}
    assert calls["calls"] == []


def test_missing_body(client, calls):
    response = client.post(url("/obtener-registros"))
    assert response.status_code == 400


def test_strict_date_format(client, calls):
    response = client.post(url("/obtener-firmas-factura"), json={"fecha_inicio": "2024/01/01", "fecha_fin": "2024-01-31"})
    assert response.status_code == 400
    assert response.json() == {"error": "Formato de fecha inválido. Use YYYY-MM-DD."}


def test_lenient_dates_are_truncated(client, calls):
    calls["result"] = [[{"id": 1}], {"affectedRows": 0}]
    response = client.post(
        url("/obtener-registros"),
        json={"fecha_inicio": "2024-01-05T10:30:00Z", "fecha_fin": "2024-01-31 23:59:59"},
    )
    assert response.status_code == 200
    assert response.json() == [{"id": 1}]
    assert calls["calls"][0]["params"] == {"fecha_inicio": "2024-01-05", "fecha_fin": "2024-01-31"}
    assert calls["calls"][0]["procedures"] == ("obtener_registros_por_fechas",)


def test_pagination(client, calls):
    calls["result"] = [[{"id": i} for i in range(5)], {"affectedRows": 0}]
    response = client.post(url("/factura-por-fechas"), json={**FECHAS, "page": 2, "pageSize": 2})
    assert response.json() == {
        "items": [{"id": 2}, {"id": 3}],
        "total": 5,
        "page": 2,
        "pageSize": 2,
        "totalPages": 3,
    }
    assert calls["calls"][0]["procedures"] == ("factura_por_fechas", "obtener_factura_por_fechas")


def test_default_parameters(client, calls):
    client.post(url("/firmas-por-enganchador"), json=FECHAS)
    client.post(url("/firmas-por-enganchador"), json={**FECHAS, "enganchador": "Juan"})
    assert calls["calls"][0]["params"]["enganchador"] == "Todos"
    assert calls["calls"][1]["params"]["enganchador"] == "Juan"


def test_attribute_filter(client, calls):
    calls["result"] = [{"Codigo_Distribuidor": "COD-123"}, {"Codigo_Distribuidor": "COD-999"}]
    response = client.post(url("/filtro-distribuidores"), json={**FECHAS, "codigo_distribuidor": "123"})
    assert response.json()["items"] == [{"Codigo_Distribuidor": "COD-123"}]
    # The filter value is not a procedure parameter
    assert "codigo_distribuidor" not in calls["calls"][0]["params"]


def test_excel_export(client, calls):
    calls["result"] = [[
        {"extra": "x", "RUC": "0990001", "PLAN": "Basico"},
        {"RUC": "0990002", "PLAN": "Pro"},
    ], {"affectedRows": 0}]
    response = client.post(url("/imprenta/pagos-facturadores"), json={**FECHAS, "generarExcel": True})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    assert response.headers["content-disposition"] == (
        "attachment; filename=pagos_facturadores_2024-01-01_2024-01-31.xlsx"
    )
    sheet = load_workbook(io.BytesIO(response.content)).active
    assert [cell.value for cell in sheet[1]] == ["RUC", "PLAN", "EXTRA"]
    assert [cell.value for cell in sheet[3]] == ["0990002", "Pro", None]


def test_excel_export_empty(client, calls):
    calls["result"] = [[], {"affectedRows": 0}]
    response = client.post(url("/obtener-registros"), json={**FECHAS, "generarExcel": True})
    assert response.status_code == 404
    assert response.json() == {"error": "No hay datos para exportar"}


def test_excel_flag_ignored_where_not_offered(client, calls):
    calls["result"] = [{"id": 1}]
    response = client.post(url("/obtener-distribuidores"), json={**FECHAS, "generarExcel": True})
    assert response.status_code == 200
    assert response.json() == [{"id": 1}]


def test_database_error(client, calls):
    calls["result"] = QueryError("Unknown column 'x'", target="firmas")
    response = client.post(url("/obtener-registros"), json=FECHAS)
    assert response.status_code == 500
    assert response.json() == {"error": "Error en la base de datos", "message": "Unknown column 'x'"}


def test_unwraps_json_rows(client, calls):
    calls["result"] = [[{"fila": '{"RUC": "0990001", "PLAN": "Basico"}'}], {"affectedRows": 0}]
    response = client.post(url("/orel/complemento-caducar"), json=FECHAS)
    assert response.json() == [{"RUC": "0990001", "PLAN": "Basico"}]


def test_falls_back_to_secondary_database(client, calls, monkeypatch):
    calls["result"] = DataSourceConnectionError("Can't connect", target="firmas")
    temporary = []

    def fake_temporary(target, procedures, params, schema=None):
        temporary.append(target)
        return [[{"json": '{"id": 7}'}], {"affectedRows": 0}]

    monkeypatch.setattr(fastapi_reports.data_service, "call_with_temporary_connection", fake_temporary)
    response = client.post(url("/firmas-generadas-factura"), json=FECHAS)
    assert response.status_code == 200
    assert response.json()["items"] == [{"id": 7}]
    assert temporary == ["firmas_2"]


def test_no_fallback_on_query_error(client, calls, monkeypatch, sqlite_target):
    calls["result"] = QueryError("syntax", original=Exception("You have an error in your SQL syntax"), target="firmas")
    temporary = []
    monkeypatch.setattr(
        fastapi_reports.data_service,
        "call_with_temporary_connection",
        lambda *args, **kwargs: temporary.append(args),
    )
    response = client.post(url("/firmas-generadas-factura"), json=FECHAS)
    assert response.status_code == 500
    assert temporary == []


def test_view_report(client, monkeypatch):
    seen = {}

    def fake_view(target, view, params, date_column=None, schema=None):
        seen.update(target=target, view=view, date_column=date_column, params=dict(params))
        return [{"id": 1}]

    monkeypatch.setattr(fastapi_reports.data_service, "query_view", fake_view)
    response = client.post(url("/firmas-vendidas"), json=FECHAS)
    assert response.json()["items"] == [{"id": 1}]
    assert seen["view"] == "vista_firmas_vendidas"
    assert seen["date_column"] == "fecha"


def test_database_health(client, monkeypatch):
    monkeypatch.setattr(
        fastapi_reports.data_service,
        "check_connection",
        lambda target: {"ok": True, "target": target, "server": {}},
    )
    response = client.get(url("/health/databases"))
    assert response.status_code == 200
    assert [item["target"] for item in response.json()["databases"]] == [
        "firmas", "firmas_2", "imprenta", "orel", "plantillas",
    ]

    monkeypatch.setattr(
        fastapi_reports.data_service,
        "check_connection",
        lambda target: {"ok": target != "orel", "target": target},
    )
    assert client.get(url("/health/databases")).status_code == 503


def test_health_and_html_redirect(client):
    from reports_backend import fastapi_app

    assert client.get("/health").json() == {"status": "ok"}
    response = client.get("/reportes/firmas?x=1", headers={"accept": "text/html"}, follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == fastapi_app.FRONTEND_URL.rstrip("/") + "/reportes/firmas?x=1"


def test_environment_loaded_once_by_dbconnect():
    from reports_backend import fastapi_app
    from reports_backend.database import dbconnect

    assert hasattr(dbconnect, "load_dotenv")
    assert not hasattr(fastapi_app, "load_dotenv")
    assert fastapi_app.API_PREFIX == API_PREFIX


def test_catalogue_keys_and_paths_are_unique():
    from reports_backend.modules.reports.report_catalog import REPORTS

    assert len({report.key for report in REPORTS}) == len(REPORTS)
    assert len({report.path for report in REPORTS}) == len(REPORTS)
