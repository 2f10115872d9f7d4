# Copyright 2026 dparv
# See LICENSE file for licensing details.

"""Register Kubernetes nodes as backends of OCI load balancers.

An `LBRegistrar` resource names a load balancer, a backend set and the
services whose node ports should receive traffic. The controller in this
package keeps the backend set in sync with the cluster's nodes, optionally
narrowed to the nodes that host ready endpoints of each service.
"""

__version__ = "0.4.0"
