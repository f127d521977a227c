# processes/print_3d/processor.py

import os
import time
import logging
from typing import Any, Dict, List, Optional, Union

from ...core.common_types import (
    DFMIssue, DFMIssueType, DFMLevel, DFMReport, DFMStatus, GeometryAnalysis,
    MaterialProfile, PriceQuote, QuoteRequest, QuoteResult, Rotation, SimulationResult
)
from ...core.exceptions import FileFormatError, GeometryProcessingError, PrintEstimatorError
from ...core import geometry, utils
from ...settings_store import StoreSettings, load_store_settings
from ...advisory import SupportEstimate, resolve_support_percent
from . import dfm_rules
from .pricing import price_quote
from .simulator import simulate_with_parameters

logger = logging.getLogger(__name__)


def _issue_type_for(error: Exception) -> DFMIssueType:
    if isinstance(error, (FileNotFoundError, FileFormatError)):
        return DFMIssueType.FILE_VALIDATION
    if isinstance(error, GeometryProcessingError):
        return DFMIssueType.GEOMETRY_ERROR
    # Unknown material, disallowed parameters, bad tiers or rates
    return DFMIssueType.CONFIGURATION


class Print3DProcessor:
    """Analyzes FDM-printable models and turns them into quotes using one settings store."""

    def __init__(self, store: Optional[StoreSettings] = None):
        self.store = store if store is not None else load_store_settings()
        self.materials: Dict[str, MaterialProfile] = {m.id: m for m in self.store.materials}
        logger.info(f"Print3DProcessor ready with {len(self.materials)} materials.")

    def get_material_info(self, material_id: str) -> MaterialProfile:
        """
        Raises:
            MaterialNotFoundError: If the material_id is not in the store.
        """
        return self.store.get_material(material_id)

    def list_available_materials(self) -> List[Dict[str, Any]]:
        return [mat.model_dump() for mat in self.materials.values()]

    def run_dfm_checks(self,
                       mesh: geometry.MeshLike,
                       geometry_analysis: GeometryAnalysis,
                       material: MaterialProfile,
                       rotation: Optional[Rotation] = None) -> DFMReport:
        """Runs the local DFM checks in the requested print orientation."""
        dfm_start_time = time.time()
        all_issues: List[DFMIssue] = []

        all_issues.extend(dfm_rules.check_degenerate_geometry(geometry_analysis))
        # Size and overhang checks mean nothing without a solid to check
        if not all_issues:
            all_issues.extend(dfm_rules.check_build_volume(geometry_analysis, material))
            all_issues.extend(dfm_rules.check_overhangs(mesh, rotation))

        final_status = dfm_rules.determine_status(all_issues)
        analysis_time = time.time() - dfm_start_time
        logger.info(f"DFM checks completed in {analysis_time:.3f}s. Status: {final_status.value}, Issues found: {len(all_issues)}")
        return DFMReport(status=final_status, issues=all_issues, analysis_time_sec=analysis_time)

    def generate_quote(self,
                       mesh_or_path: Union[str, os.PathLike, geometry.MeshLike],
                       request: QuoteRequest) -> QuoteResult:
        """
        Full pipeline: load, analyze, DFM, simulate, price.

        Known failures (missing file, unknown material, disallowed parameters,
        bad geometry, bad store tables) do not raise; they come back as an
        ``error_message`` with a FAIL DFM report. Costing is skipped when DFM fails.
        """
        total_start_time = time.time()
        file_name = None
        if isinstance(mesh_or_path, (str, os.PathLike)):
            file_name = os.path.basename(os.fspath(mesh_or_path))
        logger.info(f"Generating quote for: {file_name or 'in-memory mesh'}, Material: {request.material_id}, "
                    f"Currency: {request.currency.value}, Quantity: {request.quantity}")

        material: Optional[MaterialProfile] = None
        geometry_analysis: Optional[GeometryAnalysis] = None
        dfm_report: Optional[DFMReport] = None
        simulation: Optional[SimulationResult] = None
        price: Optional[PriceQuote] = None
        error_message: Optional[str] = None

        try:
            if file_name is not None:
                mesh = geometry.load_mesh(os.fspath(mesh_or_path))
            else:
                mesh = mesh_or_path

            material = self.get_material_info(request.material_id)
            self.store.validate_selection(request.parameters)

            geometry_analysis = geometry.analyze_geometry(mesh, request.rotation)
            dfm_report = self.run_dfm_checks(mesh, geometry_analysis, material, request.rotation)

            if dfm_report.status == DFMStatus.FAIL:
                for issue in dfm_report.issues:
                    logger.warning(f"  - DFM Issue [{issue.level.value} - {issue.issue_type.value}]: {issue.message}")
                logger.info("DFM failed; skipping simulation and pricing.")
            else:
                estimate = None
                if request.support_percent is not None:
                    estimate = SupportEstimate(support_overhead_percent=request.support_percent)
                support_percent = resolve_support_percent(estimate, self.store.process)

                simulation = simulate_with_parameters(
                    geometry_analysis, material, request.parameters, self.store.process, support_percent
                )
                currency = request.currency
                price = price_quote(
                    simulation,
                    price_per_kg=material.price_per_kg.for_currency(currency),
                    rate_per_hour=self.store.machine_rate_per_hour.for_currency(currency),
                    quantity=request.quantity,
                    pricing_tiers=self.store.pricing_tiers,
                    rounding=currency.rounding_policy,
                    currency=currency,
                )

        except (FileNotFoundError, PrintEstimatorError) as e:
            logger.error(f"Quote generation failed for {file_name or 'in-memory mesh'} due to: {e}", exc_info=True)
            error_message = f"{type(e).__name__}: {e}"
            issue_type = _issue_type_for(e)
            failure = DFMIssue(issue_type=issue_type, level=DFMLevel.CRITICAL, message=str(e),
                               recommendation="Check the file, material and parameters, then retry.")
            if dfm_report is None:
                dfm_report = DFMReport(status=DFMStatus.FAIL, issues=[failure], analysis_time_sec=0)
            else:
                dfm_report = DFMReport(status=DFMStatus.FAIL, issues=dfm_report.issues + [failure],
                                       analysis_time_sec=dfm_report.analysis_time_sec)
            simulation = None
            price = None

        total_processing_time = time.time() - total_start_time
        logger.info(f"Quote generation finished in {total_processing_time:.3f} seconds. Status: {dfm_report.status.value}")

        return QuoteResult(
            file_name=file_name,
            material=material,
            request=request,
            geometry=geometry_analysis,
            dfm_report=dfm_report,
            simulation=simulation,
            price=price,
            estimated_process_time_str=utils.format_print_time(simulation.time_hours) if simulation else None,
            processing_time_sec=total_processing_time,
            error_message=error_message,
        )
