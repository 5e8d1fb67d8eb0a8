from .repository import LeadRepository, lead_document

__all__ = ["LeadRepository", "lead_document"]
