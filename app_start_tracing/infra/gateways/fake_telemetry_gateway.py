from typing import Any, Dict, List, Optional

from app_start_tracing.domain.entities import MeasurementUnit, SpanStatus, TransactionOptions
from app_start_tracing.domain.gateways.telemetry_gateway import (
    SpanHandle,
    TelemetryGateway,
    TransactionHandle,
)
from pydantic import BaseModel, Field


class RecordedMeasurement(BaseModel):
    value: float
    unit: MeasurementUnit


class RecordedSpan(BaseModel):
    operation: str
    description: Optional[str] = None
    name: Optional[str] = None
    is_transaction: bool = False
    data: Dict[str, Any] = Field(default_factory=dict)
    tags: Dict[str, Any] = Field(default_factory=dict)
    measurements: Dict[str, RecordedMeasurement] = Field(default_factory=dict)
    measurement_writes: List[str] = Field(default_factory=list)
    status: Optional[SpanStatus] = None
    finish_calls: int = 0
    ended: bool = False
    end_time_ns: Optional[int] = None
    children: List["RecordedSpan"] = Field(default_factory=list)

    def find_children(self, operation: str) -> List["RecordedSpan"]:
        return [child for child in self.children if child.operation == operation]


def _record_measurement(record: RecordedSpan, name: str, value: float, unit: MeasurementUnit):
    record.measurements[name] = RecordedMeasurement(value=value, unit=unit)
    record.measurement_writes.append(name)


def _record_end(record: RecordedSpan, status: Optional[SpanStatus], end_time_ns: int):
    record.ended = True
    record.status = status
    record.end_time_ns = end_time_ns


class FakeSpanHandle(SpanHandle):
    def __init__(
        self,
        record: RecordedSpan,
        parent: Optional[SpanHandle] = None,
    ):
        self.record = record
        super().__init__(record.operation, record.description, parent)

    def _start_child(self, operation: str, description: Optional[str]) -> SpanHandle:
        child = RecordedSpan(operation=operation, description=description)
        self.record.children.append(child)
        return FakeSpanHandle(child, parent=self)

    def finish(
        self, status: Optional[SpanStatus] = None, end_time_ns: Optional[int] = None
    ) -> None:
        self.record.finish_calls += 1
        super().finish(status, end_time_ns)

    def _end(self, status: Optional[SpanStatus], end_time_ns: int) -> None:
        _record_end(self.record, status, end_time_ns)

    def set_data(self, key: str, value: Any) -> None:
        self.record.data[key] = value

    def set_tag(self, key: str, value: Any) -> None:
        self.record.tags[key] = value

    def set_measurement(
        self, name: str, value: float, unit: MeasurementUnit = MeasurementUnit.MILLISECOND
    ) -> None:
        _record_measurement(self.record, name, value, unit)


class FakeTransactionHandle(TransactionHandle):
    def __init__(self, record: RecordedSpan, options: Optional[TransactionOptions] = None):
        self.record = record
        super().__init__(record.name or "", record.operation, options)

    def _rename(self, name: str) -> None:
        self.record.name = name

    def _start_child(self, operation: str, description: Optional[str]) -> SpanHandle:
        child = RecordedSpan(operation=operation, description=description)
        self.record.children.append(child)
        return FakeSpanHandle(child, parent=self)

    def finish(
        self, status: Optional[SpanStatus] = None, end_time_ns: Optional[int] = None
    ) -> None:
        self.record.finish_calls += 1
        super().finish(status, end_time_ns)

    def _end(self, status: Optional[SpanStatus], end_time_ns: int) -> None:
        _record_end(self.record, status, end_time_ns)

    def set_data(self, key: str, value: Any) -> None:
        self.record.data[key] = value

    def set_tag(self, key: str, value: Any) -> None:
        self.record.tags[key] = value

    def set_measurement(
        self, name: str, value: float, unit: MeasurementUnit = MeasurementUnit.MILLISECOND
    ) -> None:
        _record_measurement(self.record, name, value, unit)


class FakeTelemetryGateway(TelemetryGateway):
    """Keeps every transaction in memory. Set `ambient_span` to simulate a trace owned by someone else."""

    def __init__(self):
        self.transactions: List[FakeTransactionHandle] = []
        self.ambient_span: Optional[SpanHandle] = None

    def reset(self):
        self.transactions = []
        self.ambient_span = None

    def start_ambient_transaction(self, name: str, operation: str) -> FakeTransactionHandle:
        transaction = self.start_transaction(name, operation)
        self.ambient_span = transaction
        return transaction

    def get_current_active_span(self) -> Optional[SpanHandle]:
        if self.ambient_span is None or self.ambient_span.finished:
            return None
        return self.ambient_span

    def start_transaction(
        self, name: str, operation: str, options: Optional[TransactionOptions] = None
    ) -> FakeTransactionHandle:
        record = RecordedSpan(operation=operation, name=name, is_transaction=True)
        transaction = FakeTransactionHandle(record, options)
        self.transactions.append(transaction)
        return transaction

    def dump(self) -> List[Dict[str, Any]]:
        return [transaction.record.model_dump(mode="json") for transaction in self.transactions]
