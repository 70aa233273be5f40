"""Routes des rapports comptables et fiscaux."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from erp_gestion.config.constants import ACHAT, VENTE
from erp_gestion.core.services import Services
from erp_gestion.routes.deps import Contexte, get_contexte, get_services
from erp_gestion.utils.date_utils import parser_date

router = APIRouter(tags=["rapports"])

MIME_XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.get("/api/reports/accounting")
def rapport_comptable(date_from: Optional[str] = Query(None, alias="from"),
                      date_to: Optional[str] = Query(None, alias="to"),
                      ctx: Contexte = Depends(get_contexte), services: Services = Depends(get_services)):
    return services.rapports.comptabilite(ctx.tenant_id, parser_date(date_from), parser_date(date_to))


@router.get("/api/reports/accounting/export")
def export_comptable(date_from: Optional[str] = Query(None, alias="from"),
                     date_to: Optional[str] = Query(None, alias="to"),
                     ctx: Contexte = Depends(get_contexte), services: Services = Depends(get_services)):
    contenu = services.rapports.export_journal_xlsx(
        ctx.tenant_id, parser_date(date_from), parser_date(date_to)
    )
    services.audit.log("export_journal", ctx.tenant_id, user_id=ctx.user["id"])
    return Response(
        content=contenu,
        media_type=MIME_XLSX,
        headers={"Content-Disposition": 'attachment; filename="journal_comptable.xlsx"'},
    )


@router.get("/api/reports/tva/collectee")
def tva_collectee(date_from: Optional[str] = Query(None, alias="from"),
                  date_to: Optional[str] = Query(None, alias="to"),
                  ctx: Contexte = Depends(get_contexte), services: Services = Depends(get_services)):
    return services.rapports.etat_tva(ctx.tenant_id, VENTE, parser_date(date_from), parser_date(date_to))


@router.get("/api/reports/tva/deductible")
def tva_deductible(date_from: Optional[str] = Query(None, alias="from"),
                   date_to: Optional[str] = Query(None, alias="to"),
                   ctx: Contexte = Depends(get_contexte), services: Services = Depends(get_services)):
    return services.rapports.etat_tva(ctx.tenant_id, ACHAT, parser_date(date_from), parser_date(date_to))
