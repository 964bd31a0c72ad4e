from gatepass.models.visitor import Visitor, VisitorStatus, PersonType

__all__ = ["Visitor", "VisitorStatus", "PersonType"]
