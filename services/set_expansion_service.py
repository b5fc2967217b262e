"""
Set expansion for imported owned vehicles.

When an imported row links to a SET product, one owned vehicle is created
for each SET_SINGLE component of that set. Expansion runs after the
parent's chunk has committed and is best-effort: a failure is logged and
reported but never changes the parent row's outcome.
"""

import structlog

from config import SetExpansionPolicy
from models.catalog import CatalogEntry
from models.owned_vehicle import OwnedVehicleCreate, OwnedVehicleResponse
from models.vehicle_import import SetExpansionJob
from services.reference_index import ReferenceIndex
from services.vehicle_store import VehicleStore
from exceptions import AppError, SetExpansionError

logger = structlog.get_logger(__name__)


def component_note(set_entry: CatalogEntry, parent: OwnedVehicleResponse) -> str:
    return f'Component of set "{set_entry.name}" (management ID: {parent.management_id})'


def build_component_record(
    component: CatalogEntry,
    set_entry: CatalogEntry,
    parent: OwnedVehicleResponse,
) -> OwnedVehicleCreate:
    """
    Owned vehicle for one set component.

    Status, storage and purchase date come from the parent; the management
    ID stays empty and no price is recorded for components.
    """
    return OwnedVehicleCreate(
        user_id=parent.user_id,
        product_id=component.id,
        management_id="",
        current_status=parent.current_status,
        storage_condition=parent.storage_condition,
        purchase_date=parent.purchase_date,
        purchase_price_including_tax=None,
        notes=component_note(set_entry, parent),
        parent_management_id=parent.management_id or None,
    )


class SetExpansionService:
    """Creates component records for imported sets."""

    def __init__(
        self,
        store: VehicleStore,
        index: ReferenceIndex,
        policy: SetExpansionPolicy = SetExpansionPolicy.ALWAYS_CREATE,
    ):
        self.store = store
        self.index = index
        self.policy = policy

    def expand(self, job: SetExpansionJob) -> list[OwnedVehicleResponse]:
        """
        Create component records for one set row.

        Args:
            job: Set entry, created parent record and its input row

        Returns:
            Created component records

        Raises:
            SetExpansionError: If any component could not be stored; the
                records that were created are kept and listed on the error
        """
        set_entry = job.set_entry
        components = self.index.components_of(set_entry)

        if not components:
            logger.info(
                "set_has_no_components",
                set_code=set_entry.product_code,
                row=job.row_number
            )
            return []

        already = self._already_expanded(job)

        created = []
        failed = []
        for component in components:
            if component.id in already:
                logger.info(
                    "set_component_skipped_existing",
                    set_code=set_entry.product_code,
                    component_id=component.id,
                    parent_management_id=job.parent.management_id
                )
                continue

            try:
                record = build_component_record(component, set_entry, job.parent)
                created.append(self.store.create_one(record))
            except Exception as e:
                reason = e.message if isinstance(e, AppError) else str(e)
                logger.warning(
                    "set_component_failed",
                    set_code=set_entry.product_code,
                    component_id=component.id,
                    error=reason,
                    error_type=type(e).__name__
                )
                failed.append(f"{component.product_code or component.id}: {reason}")

        if failed:
            raise SetExpansionError(
                set_entry.product_code or "",
                f"Set {set_entry.product_code}: {len(failed)} of {len(components)} "
                f"components failed ({'; '.join(failed)})",
                row=job.row_number,
                created=created,
            )

        logger.info(
            "set_expanded",
            set_code=set_entry.product_code,
            row=job.row_number,
            components=len(components),
            created=len(created)
        )

        return created

    def _already_expanded(self, job: SetExpansionJob) -> set[int]:
        """Component product IDs recorded by a previous import of the same set instance."""
        if self.policy != SetExpansionPolicy.SKIP_EXISTING:
            return set()
        if not job.parent.management_id:
            # Without a management ID there is no way to tell set instances apart.
            return set()
        return self.store.find_set_components(job.parent.user_id, job.parent.management_id)

    def drain(self, jobs: list[SetExpansionJob]) -> tuple[int, list[tuple[int, str]]]:
        """
        Run every queued job, isolating failures per job.

        Returns:
            (records created, [(row number, error message), ...])
        """
        total = 0
        failures: list[tuple[int, str]] = []

        for job in jobs:
            try:
                total += len(self.expand(job))
            except SetExpansionError as e:
                total += len(e.created)
                logger.error(
                    "set_expansion_failed",
                    row=job.row_number,
                    set_code=job.set_entry.product_code,
                    created=len(e.created),
                    error=e.message
                )
                failures.append((job.row_number, e.message))
            except AppError as e:
                logger.error(
                    "set_expansion_failed",
                    row=job.row_number,
                    set_code=job.set_entry.product_code,
                    error=e.message
                )
                failures.append((job.row_number, e.message))
            except Exception as e:
                logger.error(
                    "set_expansion_failed",
                    row=job.row_number,
                    set_code=job.set_entry.product_code,
                    error=str(e),
                    error_type=type(e).__name__
                )
                failures.append((job.row_number, str(e)))

        return total, failures

