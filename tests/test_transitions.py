from app.ledger.records import OrderStatus
from app.services.accrual import AccrualStatus
from app.services.orders import next_status


def test_forward_transitions():
    assert next_status(OrderStatus.NEW, AccrualStatus.PROCESSING) is OrderStatus.PROCESSING
    assert next_status(OrderStatus.NEW, AccrualStatus.INVALID) is OrderStatus.INVALID
    assert next_status(OrderStatus.NEW, AccrualStatus.PROCESSED) is OrderStatus.PROCESSED
    assert next_status(OrderStatus.PROCESSING, AccrualStatus.INVALID) is OrderStatus.INVALID
    assert next_status(OrderStatus.PROCESSING, AccrualStatus.PROCESSED) is OrderStatus.PROCESSED


def test_no_ops():
    assert next_status(OrderStatus.NEW, AccrualStatus.REGISTERED) is None
    assert next_status(OrderStatus.PROCESSING, AccrualStatus.PROCESSING) is None
    assert next_status(OrderStatus.PROCESSING, AccrualStatus.REGISTERED) is None


def test_terminal_orders_never_move():
    for terminal in (OrderStatus.PROCESSED, OrderStatus.INVALID):
        assert terminal.is_terminal
        for reported in AccrualStatus:
            assert next_status(terminal, reported) is None
