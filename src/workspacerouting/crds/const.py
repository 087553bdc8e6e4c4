CRD_GROUP = "controller.devfile.io"
CRD_VERSION = "v1alpha1"
CRD_KIND_ROUTING = "WorkspaceRouting"
CRD_PLURAL_ROUTING = "workspaceroutings"

# Labels and annotations shared by every generated object.
WORKSPACE_ID_LABEL = f"{CRD_GROUP}/workspace_id"
WORKSPACE_NAME_LABEL = f"{CRD_GROUP}/devworkspace_name"
ENDPOINT_NAME_ANNOTATION = f"{CRD_GROUP}/endpoint_name"
RESTRICTED_ACCESS_ANNOTATION = f"{CRD_GROUP}/restricted-access"
DISCOVERABLE_SERVICE_ANNOTATION = f"{CRD_GROUP}/discoverable-service"
ROUTING_TRIGGER_ANNOTATION = f"{CRD_GROUP}/routing-trigger"

ROUTING_FINALIZER = f"workspacerouting.{CRD_GROUP}"

# Routing classes understood by this operator.
ROUTING_CLASS_BASIC = "basic"
ROUTING_CLASS_OPENSHIFT_OAUTH = "openshift-oauth"
ROUTING_CLASS_CLUSTER = "cluster"
ROUTING_CLASS_CLUSTER_TLS = "cluster-tls"
ROUTING_CLASS_WEB_TERMINAL = "web-terminal"

# Phases
PHASE_PREPARING = "Preparing"
PHASE_READY = "Ready"
PHASE_FAILED = "Failed"

# Endpoint attributes
DISCOVERABLE_ATTRIBUTE = "discoverable"
TYPE_ATTRIBUTE = "type"
