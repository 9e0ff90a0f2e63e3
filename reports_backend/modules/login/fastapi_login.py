import secrets
from typing import Any, Dict, Optional

from fastapi import APIRouter
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from reports_backend.modules.logger import error, info, warning
from reports_backend.modules.reports.report_service import ReportDataService, ReportServiceError
from reports_backend.modules.reports.result_pipeline import normalize_results

router = APIRouter(tags=["auth"])
data_service = ReportDataService()

USER_TARGET = "firmas"
USER_LOOKUP_SQL = (
    "SELECT USUIDENTIFICACION, USUNOMBRE, USUCLAVE, USUAPELLIDO, COMCODIGO, USUPERFIL, telefono, correo "
    "FROM SEG_MAEUSUARIO WHERE USUIDENTIFICACION = :usuario LIMIT 1"
)


class LoginRequest(BaseModel):
    Usuario: Optional[str] = None
    Clave: Optional[str] = None


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def validate_user(usuario: str, clave: str) -> Optional[Dict[str, Any]]:
    """Look up the user and compare the given key. Returns the user row or None."""
    rows = normalize_results(
        data_service.execute(USER_LOOKUP_SQL, {"usuario": usuario}, target=USER_TARGET)
    )
    if not rows:
        return None
    user = rows[0]
    provided = _text(clave)
    if provided and provided in (_text(user.get("USUNOMBRE")), _text(user.get("USUCLAVE"))):
        return user
    return None


def public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "USUIDENTIFICACION": user.get("USUIDENTIFICACION"),
        "USUNOMBRE": user.get("USUNOMBRE"),
        "telefono": user.get("telefono") or None,
        "correo": user.get("correo") or None,
    }


@router.post("/login")
async def login(payload: Optional[LoginRequest] = None):
    payload = payload or LoginRequest()
    if not payload.Usuario or not payload.Clave:
        return JSONResponse(status_code=400, content={"message": "Usuario and Clave are required"})

    try:
        user = await run_in_threadpool(validate_user, payload.Usuario, payload.Clave)
    except ReportServiceError as exc:
        error(f"Login error: {exc.message}")
        return JSONResponse(status_code=500, content={"message": "Server error"})

    if not user:
        warning(f"Login rejected for {payload.Usuario}")
        return JSONResponse(status_code=401, content={"message": "Invalid credentials"})

    info(f"Login accepted for {payload.Usuario}")
    # Opaque session token for the frontend; not a JWT
    return {"token": secrets.token_hex(32), "user": public_user(user)}
