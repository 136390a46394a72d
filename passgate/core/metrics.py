# passgate/core/metrics.py
from prometheus_client import Counter

VALIDATIONS = Counter(
    "passgate_validations_total",
    "Access validation outcomes",
    ["path", "reason"],
)

PASSCODES_ISSUED = Counter(
    "passgate_passcodes_issued_total",
    "Passcodes issued",
    ["owner_type"],
)
