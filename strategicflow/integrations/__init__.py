"""strategicflow.integrations: Upstream REST API gateway.

All outbound HTTP calls to the strategic-planning REST API go through the
gateway in this package, never via bare `requests` calls in panels or
blueprints. Every call:
  - carries the caller's session cookies
  - echoes the CSRF cookie as a header when asked to
  - raises ApiRequestError on any non-2xx status or network failure
  - is logged with method, path and status

Current gateways:
  api_gateway.ApiGateway: strategic-planning REST API
"""
