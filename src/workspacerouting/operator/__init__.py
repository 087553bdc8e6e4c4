# NOTE: This is what registers our operator's function with kopf so that
#       `kopf.run -m workspacerouting.operator` can work. If you add more functions
#       to the operator, you must add them here.
# flake8: noqa: F401
from .operator import on_startup
from .routing.handler import reconcile_workspace_routing
from .routing.handler import finalize_workspace_routing
from .routing.handler import on_service_event
from .routing.handler import on_ingress_event
from .routing.handler import on_route_event
