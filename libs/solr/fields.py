"""Schema field names and wire constants shared with the Solr side."""

# Logical partition number of the owning vnode.
PN_FIELD = "_yz_pn"
# Sub-partition ("filter partition") number used to narrow a cover entry.
FPN_FIELD = "_yz_fpn"
# Replica key components.
RT_FIELD = "_yz_rt"
RB_FIELD = "_yz_rb"
RK_FIELD = "_yz_rk"

# Bucket type assumed for objects written before bucket types existed.
DEFAULT_TYPE = "default"

SOLR_HOST_CONTEXT = "/internal_solr"

# Keys of the pool configuration accepted by ``SolrTransport.set_pool_config``.
MAX_SESSIONS = "max_sessions"
MAX_PIPELINE_SIZE = "max_pipeline_size"
