from licensehub.ddd.commands import Command, Id, Query
from licensehub.ddd.domain_module import DomainModule

__all__ = ["Command", "Id", "Query", "DomainModule"]
