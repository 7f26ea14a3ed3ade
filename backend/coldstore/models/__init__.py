"""Aggregate model imports for Alembic auto-detection and metadata.create_all."""

from coldstore.models.cold_storage import ColdStorage, GatePassCounter  # noqa: F401
from coldstore.models.farmer import Farmer, FarmerStorageLink  # noqa: F401

# Ledger
from coldstore.models.incoming_gate_pass import IncomingGatePass  # noqa: F401
from coldstore.models.grading_gate_pass import GradingGatePass, GradingBucket  # noqa: F401
from coldstore.models.storage_gate_pass import StorageGatePass, StorageBucket  # noqa: F401
from coldstore.models.nikasi_gate_pass import NikasiGatePass  # noqa: F401
from coldstore.models.allocation import Allocation, BucketSnapshot  # noqa: F401

# Audit
from coldstore.models.activity_log import ActivityLog  # noqa: F401
