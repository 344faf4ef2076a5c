"""
External (vendor-outsourced) step derivation.

For each assembly, works out which outsourced steps apply (from costings
and from recorded activities), their status, vendor, lead time, ETA and
whether they are running late.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import structlog

from config import settings
from models.activity import (
    ActivityAction,
    ActivityKind,
    AssemblyActivity,
    AssemblyStage,
    ExternalStepType,
)
from models.assembly import AssemblyRecord, CostingRecord
from models.external_step import (
    STEP_LABELS,
    TERMINAL_STATUSES,
    DerivedExternalStep,
    ExternalStepActivity,
    ExternalStepStatus,
)
from models.lead_time import (
    CompanyLeadTime,
    CostingLeadTime,
    LeadTimeContext,
    ProductLeadTime,
)
from services.lead_time_service import resolve_lead_time_detail
from utils.number_utils import to_float

logger = structlog.get_logger(__name__)

STEP_ORDER = [t.value for t in ExternalStepType]

LATE_CHECK_DAY = "day"
LATE_CHECK_TIMESTAMP = "timestamp"


def _aware(value: datetime) -> datetime:
    """Naive datetimes from the database are UTC."""
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _latest(activities: Iterable[AssemblyActivity]) -> Optional[AssemblyActivity]:
    """Most recent activity by date; ties go to the later item."""
    latest = None
    latest_at = None
    for act in activities:
        if act.activity_date is None:
            continue
        at = _aware(act.activity_date)
        if latest_at is None or at >= latest_at:
            latest, latest_at = act, at
    return latest


def _step_label(step_type: str) -> str:
    try:
        return STEP_LABELS[ExternalStepType(step_type)]
    except ValueError:
        return step_type


class ExternalStepService:
    """
    Derives outsourced step state for assemblies.

    Lateness is checked either per calendar day in the business timezone
    (a step is late once its ETA day is over) or per exact timestamp.
    Both the mode and the clock can be injected for tests.
    """

    def __init__(
        self,
        late_check_mode: Optional[str] = None,
        business_timezone: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.late_check_mode = late_check_mode or settings.late_check_mode
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        tz_name = business_timezone or settings.business_timezone
        try:
            self.tz = ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("unknown_business_timezone", timezone=tz_name)
            self.tz = ZoneInfo("UTC")

    # ===================
    # LATENESS
    # ===================

    def compute_eta(
        self,
        sent_date: Optional[datetime],
        lead_time_days: Optional[float],
    ) -> Optional[datetime]:
        """Latest send date plus whole lead-time days."""
        if sent_date is None or not lead_time_days:
            return None
        try:
            return sent_date + timedelta(days=int(lead_time_days))
        except (OverflowError, ValueError):
            logger.warning(
                "eta_out_of_range",
                sent_date=sent_date.isoformat(),
                lead_time_days=lead_time_days,
            )
            return None

    def is_late(
        self,
        eta_date: Optional[datetime],
        status: ExternalStepStatus,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        True when the ETA has passed and the goods are not back.

        Args:
            eta_date: Expected return, or None (never late)
            status: Step status; terminal statuses are never late
            now: Override for the current instant
        """
        if eta_date is None or status in TERMINAL_STATUSES:
            return False
        now = _aware(now or self.clock())
        eta = _aware(eta_date)
        if self.late_check_mode == LATE_CHECK_TIMESTAMP:
            return eta < now
        return eta.astimezone(self.tz).date() < now.astimezone(self.tz).date()

    # ===================
    # DERIVATION
    # ===================

    def build_external_steps_by_assembly(
        self,
        assemblies: Sequence[Any],
        activities_by_assembly: Mapping[int, Sequence[Any]],
        quantity_by_assembly: Optional[Mapping[int, Mapping[str, float]]] = None,
        now: Optional[datetime] = None,
    ) -> dict[int, list[DerivedExternalStep]]:
        """
        Derive steps for several assemblies.

        Args:
            assemblies: AssemblyRecord models or dicts (with costings)
            activities_by_assembly: Activities per assembly id
            quantity_by_assembly: Stage totals per assembly id (cut, sew, finish, pack)
            now: Override for the current instant

        Returns:
            Dict of assembly id -> ordered list of steps
        """
        quantity_by_assembly = quantity_by_assembly or {}
        result = {}
        for raw in assemblies:
            assembly = raw if isinstance(raw, AssemblyRecord) else AssemblyRecord.model_validate(raw)
            result[assembly.id] = self.derive_steps_for_assembly(
                assembly,
                activities_by_assembly.get(assembly.id) or [],
                quantity_by_assembly.get(assembly.id) or {},
                now=now,
            )
        return result

    def derive_steps_for_assembly(
        self,
        assembly: AssemblyRecord,
        activities: Sequence[Any],
        totals: Optional[Mapping[str, float]] = None,
        now: Optional[datetime] = None,
    ) -> list[DerivedExternalStep]:
        """Steps expected by costings or seen in activities, in display order."""
        acts = [AssemblyActivity.coerce(a) for a in activities]
        totals = totals or {}

        expected_types: list[str] = []
        for costing in assembly.costings:
            step_type = costing.external_step_type or (
                costing.product.external_step_type if costing.product else None
            )
            if step_type and step_type not in expected_types:
                expected_types.append(step_type)

        union_types = list(expected_types)
        for act in acts:
            if act.external_step_type and act.external_step_type not in union_types:
                union_types.append(act.external_step_type)

        ordered_types = [t for t in STEP_ORDER if t in union_types]
        ordered_types += [t for t in union_types if t not in STEP_ORDER]
        if not ordered_types:
            return []

        has_finish = to_float(totals.get("finish")) > 0 or any(
            a.stage == AssemblyStage.FINISH.value and a.quantity > 0 for a in acts
        )
        has_sew = to_float(totals.get("sew")) > 0 or any(
            a.stage == AssemblyStage.SEW.value and a.quantity > 0 for a in acts
        )
        stage_dates = {
            stage: self._latest_stage_date(acts, stage)
            for stage in ("cut", "sew", "finish")
        }

        steps = []
        for step_type in ordered_types:
            step = self._derive_step(
                step_type=step_type,
                assembly=assembly,
                activities=acts,
                has_finish=has_finish,
                has_sew=has_sew,
                stage_dates=stage_dates,
                expected=step_type in expected_types,
                now=now,
            )
            if step is not None:
                steps.append(step)
        return steps

    def _derive_step(
        self,
        step_type: str,
        assembly: AssemblyRecord,
        activities: list[AssemblyActivity],
        has_finish: bool,
        has_sew: bool,
        stage_dates: dict[str, Optional[datetime]],
        expected: bool,
        now: Optional[datetime],
    ) -> Optional[DerivedExternalStep]:
        step_acts = [a for a in activities if a.external_step_type == step_type]
        if not expected and not step_acts:
            return None

        sent_events = [a for a in step_acts if a.action == ActivityAction.SENT_OUT.value]
        received_events = [a for a in step_acts if a.action == ActivityAction.RECEIVED_IN.value]
        latest_sent = _latest(sent_events)
        latest_received = _latest(received_events)

        if received_events:
            status = ExternalStepStatus.DONE
        elif sent_events:
            status = ExternalStepStatus.IN_PROGRESS
        elif has_finish and expected:
            status = ExternalStepStatus.IMPLICIT_DONE
        else:
            status = ExternalStepStatus.NOT_STARTED

        defect_qty = sum(
            (abs(a.quantity) for a in step_acts if a.kind == ActivityKind.DEFECT.value),
            0.0,
        )

        vendor = None
        if latest_received and latest_received.vendor:
            vendor = latest_received.vendor
        elif latest_sent and latest_sent.vendor:
            vendor = latest_sent.vendor

        lead_time = resolve_lead_time_detail(self._lead_time_context(assembly, step_type))
        if expected and lead_time.value is None:
            logger.warning(
                "external_step_missing_lead_time",
                assembly_id=assembly.id,
                step_type=step_type,
            )

        sent_date = latest_sent.activity_date if latest_sent else None
        eta_date = self.compute_eta(sent_date, lead_time.value)
        is_late = self.is_late(eta_date, status, now=now)
        low_confidence = not has_sew and status in (
            ExternalStepStatus.IN_PROGRESS,
            ExternalStepStatus.DONE,
            ExternalStepStatus.IMPLICIT_DONE,
        )

        has_explicit_events = bool(sent_events or received_events)
        inferred_start = None
        inferred_end = None
        if not has_explicit_events:
            inferred_start = stage_dates["sew"] or stage_dates["cut"]
            inferred_end = stage_dates["finish"]

        return DerivedExternalStep(
            type=step_type,
            label=_step_label(step_type),
            expected=expected,
            status=status,
            sent_date=sent_date,
            received_date=latest_received.activity_date if latest_received else None,
            qty_out=latest_sent.quantity if latest_sent else None,
            qty_in=latest_received.quantity if latest_received else None,
            defect_qty=defect_qty if defect_qty > 0 else None,
            vendor=vendor,
            eta_date=eta_date,
            lead_time_days=lead_time.value,
            lead_time_source=lead_time.source,
            is_late=is_late,
            low_confidence=low_confidence,
            inferred_start_date=inferred_start,
            inferred_end_date=inferred_end,
            activities=[
                ExternalStepActivity(
                    id=a.id,
                    action=a.action,
                    kind=a.kind,
                    activity_date=a.activity_date,
                    quantity=a.quantity,
                    vendor=a.vendor,
                )
                for a in step_acts
            ],
        )

    def _lead_time_context(self, assembly: AssemblyRecord, step_type: str) -> LeadTimeContext:
        """Costing for the step, its product (or the assembly's), that product's supplier."""
        costing = self._find_costing_for_step(assembly, step_type)
        product = (costing.product if costing else None) or assembly.product
        company = None
        if costing and costing.product and costing.product.supplier:
            company = costing.product.supplier
        elif assembly.product and assembly.product.supplier:
            company = assembly.product.supplier

        return LeadTimeContext(
            costing=CostingLeadTime(lead_time_days=costing.lead_time_days) if costing else None,
            product=ProductLeadTime(lead_time_days=product.lead_time_days) if product else None,
            company=(
                CompanyLeadTime(default_lead_time_days=company.default_lead_time_days)
                if company else None
            ),
        )

    @staticmethod
    def _find_costing_for_step(
        assembly: AssemblyRecord,
        step_type: str,
    ) -> Optional[CostingRecord]:
        """Prefer a costing of this step type that has a positive lead time."""
        candidates = [c for c in assembly.costings if c.external_step_type == step_type]
        if not candidates:
            return None
        for costing in candidates:
            if to_float(costing.lead_time_days) > 0:
                return costing
        return candidates[0]

    @staticmethod
    def _latest_stage_date(
        activities: list[AssemblyActivity],
        stage: str,
    ) -> Optional[datetime]:
        latest = _latest(a for a in activities if a.stage == stage)
        return latest.activity_date if latest else None


# Singleton instance
_service: Optional[ExternalStepService] = None


def get_external_step_service() -> ExternalStepService:
    """Get or create ExternalStepService instance."""
    global _service
    if _service is None:
        _service = ExternalStepService()
    return _service
