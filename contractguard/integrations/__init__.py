from .actions import as_action
from .flask import contract_view, init_app, to_jsonable

__all__ = ['as_action', 'contract_view', 'init_app', 'to_jsonable']
