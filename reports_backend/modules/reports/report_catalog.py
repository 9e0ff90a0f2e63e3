"""
Declarative catalogue of report endpoints.

Each entry says which database target and routine feed the report, which
request fields become procedure parameters, and how the rows are shaped
(JSON unwrapping, attribute filtering, pagination, spreadsheet layout).
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from reports_backend.modules.reports.excel_export import DEFAULT_MAX_COLUMN_WIDTH


@dataclass(frozen=True)
class ReportDefinition:
    key: str
    path: str
    target: str
    procedures: Tuple[str, ...] = ()
    params: Tuple[str, ...] = ("fecha_inicio", "fecha_fin")
    sheet_title: str = "Reporte"
    filename_prefix: str = "reporte"
    preferred_columns: Tuple[str, ...] = ()
    max_width: int = DEFAULT_MAX_COLUMN_WIDTH
    paginate: bool = False
    unwrap_json: bool = False
    allow_excel: bool = True
    attribute_filter: Optional[str] = None
    fallback_target: Optional[str] = None
    use_schema: bool = False
    strict_dates: bool = False
    defaults: Dict[str, Any] = field(default_factory=dict)
    view: Optional[str] = None
    view_date_column: Optional[str] = None

    def __post_init__(self):
        if not self.procedures and not self.view:
            raise ValueError(f"Report '{self.key}' needs a procedure or a view")


PAGOS_FACTURADORES_COLUMNS = (
    "RUC",
    "RAZON_SOCIAL",
    "TELEFONO",
    "FECHA_REG_PLAN",
    "PLAN",
    "VALOR_PAGO",
    "USADOS",
    "FECHA_CAD_PLAN",
    "Codigo_Distribuidor",
    "RUC_Distribuidor",
    "Nombre_Distribuidor",
    "Telefono_Distribuidor",
    "Correo_Distribuidor",
)

COMPLEMENTO_CADUCAR_COLUMNS = (
    "IDREGISTRO", "REGUSERNAME", "REGRUC", "REGPLAN", "CORREO", "TELEFONO", "VIGENCIA",
    "BOT_RECIBIDOS", "BOT_EMITIDOS", "REGUSER", "FECHA_INICIO", "FECHA_CADUCIDAD",
    "REGCIUDAD", "REGRAZON", "REGPAGO", "FECHA_REGDEMO", "COMENTARIO", "CONTROL", "PRECIO",
    "OBSERVACION", "LICENCIA", "BANCO", "NRO_COMPROBANTE", "CODIGO_UNICO", "ESTADO",
)

PLANTILLAS_CADUCAR_COLUMNS = (
    "ID", "MAC", "RUC", "NOMBRE", "TIPO_PLANTILLA", "VENDEDOR", "FECHA_ACTIVACION",
    "FECHA_CADUCIDAD", "COMENTARIO", "TELEFONO", "CORREO", "ESTADO", "CIUDAD", "MATRICULADO",
    "GRATIS", "TERMINOS", "PERMISO", "LICENCIA", "PRECIO", "BANCO", "COMPROBANTE",
    "ARCHIVO_PAGO", "DOCUMENTO_PAGO", "FECHA_COMPROBANTE", "NUM_FACTURA", "CODIGO_UNICO",
    "CONTADOR_USO", "CREATED_AT", "UPDATED_AT",
)


REPORTS: List[ReportDefinition] = [
    # Firmas
    ReportDefinition(
        key="registros_fechas",
        path="/obtener-registros",
        target="firmas",
        procedures=("obtener_registros_por_fechas",),
        sheet_title="Registros por Fechas",
        filename_prefix="registros_fechas",
    ),
    ReportDefinition(
        key="firmas_factura",
        path="/obtener-firmas-factura",
        target="firmas",
        procedures=("obtener_firmas_factura_fechas",),
        sheet_title="Firmas Factura",
        filename_prefix="firmas_factura",
        strict_dates=True,
        allow_excel=False,
    ),
    ReportDefinition(
        key="distribuidores",
        path="/obtener-distribuidores",
        target="firmas",
        procedures=("filtrar_distribuidores_por_fecha",),
        sheet_title="Distribuidores",
        filename_prefix="distribuidores",
        allow_excel=False,
    ),
    ReportDefinition(
        key="factura_fechas",
        path="/factura-por-fechas",
        target="firmas",
        procedures=("factura_por_fechas", "obtener_factura_por_fechas"),
        sheet_title="Facturas por Fechas",
        filename_prefix="factura_fechas",
        paginate=True,
    ),
    ReportDefinition(
        key="firmas_generadas_factura",
        path="/firmas-generadas-factura",
        target="firmas",
        procedures=("obtener_firmas_generadas_con_factura",),
        fallback_target="firmas_2",
        sheet_title="Firmas Generadas Factura",
        filename_prefix="firmas_generadas_factura",
        paginate=True,
        unwrap_json=True,
    ),
    ReportDefinition(
        key="filtro_distribuidores",
        path="/filtro-distribuidores",
        target="firmas",
        procedures=("filtrar_distribuidores_por_fecha",),
        attribute_filter="codigo_distribuidor",
        sheet_title="Filtro Distribuidores",
        filename_prefix="filtro_distribuidores",
        paginate=True,
    ),
    ReportDefinition(
        key="firmas_enganchador",
        path="/firmas-por-enganchador",
        target="firmas",
        procedures=("obtener_firmas_por_enganchador",),
        params=("fecha_inicio", "fecha_fin", "enganchador"),
        defaults={"enganchador": "Todos"},
        sheet_title="Firmas por Enganchador",
        filename_prefix="firmas_enganchador",
        paginate=True,
    ),
    ReportDefinition(
        key="firmas_vendidas",
        path="/firmas-vendidas",
        target="firmas",
        view="vista_firmas_vendidas",
        view_date_column="fecha",
        sheet_title="Firmas Vendidas",
        filename_prefix="firmas_vendidas",
        paginate=True,
    ),
    ReportDefinition(
        key="cantidad_firmas_distribuidor",
        path="/cantidad-firmas-distribuidor",
        target="firmas",
        procedures=(
            "cantidad_firmas_por_distribuidor",
            "CantidadFirmasPorDistribuidor",
            "obtener_cantidad_firmas_distribuidor",
        ),
        attribute_filter="codigo_distribuidor",
        sheet_title="Cantidad Firmas Distribuidor",
        filename_prefix="cantidad_firmas_distribuidor",
    ),
    # Firmas (BD 2)
    ReportDefinition(
        key="firmas_estado",
        path="/firmas-estado",
        target="firmas_2",
        procedures=("FirmasporVencer",),
        params=("fecha_inicio", "fecha_fin", "estado"),
        defaults={"estado": "Todos"},
        sheet_title="Firmas por Vencer",
        filename_prefix="firmas_estado",
        paginate=True,
        allow_excel=False,
    ),
    # Orel
    ReportDefinition(
        key="complemento_caducar",
        path="/orel/complemento-caducar",
        target="orel",
        procedures=("ConsultarRegistrosPorCaducar",),
        sheet_title="Complemento Caducar",
        filename_prefix="complemento_caducar",
        preferred_columns=COMPLEMENTO_CADUCAR_COLUMNS,
        unwrap_json=True,
    ),
    # Plantillas
    ReportDefinition(
        key="plantillas_caducar",
        path="/plantillas/por-caducar",
        target="plantillas",
        procedures=("ConsultarRegistrosPorCaducar",),
        sheet_title="Plantillas Caducar",
        filename_prefix="plantillas_caducar",
        preferred_columns=PLANTILLAS_CADUCAR_COLUMNS,
        unwrap_json=True,
    ),
    # Imprenta
    ReportDefinition(
        key="pagos_facturadores",
        path="/imprenta/pagos-facturadores",
        target="imprenta",
        procedures=("obtener_PagosFacturadores",),
        sheet_title="Pagos Facturadores",
        filename_prefix="pagos_facturadores",
        preferred_columns=PAGOS_FACTURADORES_COLUMNS,
        unwrap_json=True,
        use_schema=True,
    ),
    ReportDefinition(
        key="emisores_fechas",
        path="/imprenta/emisores-por-fechas",
        target="imprenta",
        procedures=("obtenerEmisoresPorFechas",),
        sheet_title="Emisores por Fechas",
        filename_prefix="emisores",
        max_width=80,
        paginate=True,
        unwrap_json=True,
        use_schema=True,
    ),
    ReportDefinition(
        key="auditoria_planes",
        path="/imprenta/auditoria-planes-por-fechas",
        target="imprenta",
        procedures=("obtenerAuditoriaPlanesPorFechas",),
        sheet_title="Auditoria Planes",
        filename_prefix="auditoria_planes",
        max_width=80,
        paginate=True,
        unwrap_json=True,
        use_schema=True,
    ),
]
