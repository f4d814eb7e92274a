from .shipment import ShipmentEvent, ShipmentRecord  # noqa: F401
