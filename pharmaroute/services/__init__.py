"""Engine services: resolution, invocation, validation, preprocessing, recording."""

from pharmaroute.services.adapter_invoker import AdapterInvoker, InvocationResult
from pharmaroute.services.assignment_resolver import AssignmentResolver
from pharmaroute.services.preprocessing_service import PreprocessingService, load_variations
from pharmaroute.services.result_validator import ResultValidator
from pharmaroute.services.usage_recorder import UsageRecorder

__all__ = [
    "AdapterInvoker",
    "AssignmentResolver",
    "InvocationResult",
    "PreprocessingService",
    "ResultValidator",
    "UsageRecorder",
    "load_variations",
]
