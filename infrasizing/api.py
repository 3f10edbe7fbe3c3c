"""FastAPI routes for the sizing and cost engines."""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from infrasizing.catalog import get_distribution, get_distributions, get_technologies
from infrasizing.cloud_pricing import CloudPricingRegistry
from infrasizing.cluster_sizing import ClusterSizingEngine
from infrasizing.cost_model import (
    estimate_cluster_cost,
    estimate_on_prem_cluster_cost,
    estimate_on_prem_vm_cost,
    estimate_vm_cost,
    licensing_input_for,
)
from infrasizing.errors import ConfigurationInconsistency, InvalidInput, UnsupportedKey
from infrasizing.growth import project_cluster_growth, project_vm_growth
from infrasizing.licensing import LicensingProviderRegistry
from infrasizing.models import (
    BlockCostRequest,
    BracketCostRequest,
    CloudPricing,
    ClusterCostRequest,
    ClusterCostResponse,
    ClusterGrowthRequest,
    ClusterSizingInput,
    ClusterSizingResult,
    GrowthProjection,
    LicensingCost,
    LicensingInput,
    MendixCostRequest,
    OnPremClusterCostRequest,
    OnPremVMCostRequest,
    OutSystemsCostRequest,
    VMCostRequest,
    VMCostResponse,
    VMGrowthRequest,
    VMSizingInput,
    VMSizingResult,
)
from infrasizing.observability import RequestLoggingMiddleware, get_metrics_text, record_calculation
from infrasizing.resilience import get_cached, get_calc_timeout_sec, run_sync_with_timeout, set_cached
from infrasizing.security import RateLimitMiddleware
from infrasizing.settings import load_settings
from infrasizing.tiered_pricing import (
    bracket_breakdown,
    calculate_block_cost,
    mendix_k8s_platform_cost,
    outsystems_platform_cost,
)
from infrasizing.vm_sizing import VMSizingEngine

_LOG = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    raw = (os.environ.get("INFRASIZE_CORS_ORIGINS") or "").strip()
    if not raw:
        return []
    if raw == "*":
        return ["*"]
    return [o.strip() for o in raw.split(",") if o.strip()]


settings = load_settings()
cluster_engine = ClusterSizingEngine(settings)
vm_engine = VMSizingEngine(settings)
licensing_registry = LicensingProviderRegistry()
pricing_registry = CloudPricingRegistry()


@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Fail at startup on a broken catalog rather than on the first request
    technologies = get_technologies()
    distributions = get_distributions()
    _LOG.info(
        "catalogs loaded",
        extra={"technologies": len(technologies), "distributions": len(distributions)},
    )
    yield


app = FastAPI(
    title="Infrastructure Sizing",
    description="Capacity and cost calculation for Kubernetes clusters and VM fleets",
    version="0.1.0",
    lifespan=lifespan,
)
origins = _cors_origins()
if origins:
    app.add_middleware(CORSMiddleware, allow_origins=origins, allow_credentials=True, allow_methods=["*"], allow_headers=["*"])
app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(InvalidInput)
async def _invalid_input(_request: Request, exc: InvalidInput):
    return JSONResponse(status_code=422, content={"detail": str(exc), "field": exc.field})


@app.exception_handler(UnsupportedKey)
async def _unsupported_key(_request: Request, exc: UnsupportedKey):
    return JSONResponse(status_code=404, content={"detail": str(exc), "key": exc.key})


@app.exception_handler(ConfigurationInconsistency)
async def _inconsistent(_request: Request, exc: ConfigurationInconsistency):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def _run(kind: str, func, *args):
    """Run a calculation on the worker pool; 504 on timeout."""
    try:
        result = run_sync_with_timeout(get_calc_timeout_sec(), func, *args)
    except TimeoutError:
        record_calculation(kind, "timeout")
        raise HTTPException(status_code=504, detail="Calculation timed out. Try again or reduce input size.")
    record_calculation(kind)
    return result


@app.get("/v1/health")
def health():
    return {"status": "ok", "service": "infrasizing"}


@app.get("/v1/metrics")
def metrics():
    """Prometheus-style metrics (request counts, calculations, uptime, duration)."""
    return PlainTextResponse(get_metrics_text(), media_type="text/plain; charset=utf-8")


@app.get("/v1/catalog/technologies")
def catalog_technologies():
    return [t.model_dump(mode="json") for t in get_technologies()]


@app.get("/v1/catalog/distributions")
def catalog_distributions():
    """Node specs per distribution; licensing keys come from /v1/licensing."""
    return [d.model_dump(mode="json") for d in get_distributions()]


@app.get("/v1/catalog/providers")
def catalog_providers():
    """Cloud providers with pricing catalogs, plus managed OpenShift offerings."""
    return pricing_registry.providers()


@app.get("/v1/catalog/regions")
def catalog_regions(provider: str):
    return pricing_registry.regions(provider)


@app.post("/v1/k8s/calculate", response_model=ClusterSizingResult)
def k8s_calculate(request: ClusterSizingInput):
    """Size Kubernetes clusters per environment. Identical requests are served from cache."""
    request_dict = request.model_dump(mode="json")
    cached = get_cached("k8s", request_dict)
    if cached is not None:
        record_calculation("k8s", "cache_hit")
        return ClusterSizingResult.model_validate(cached)
    result = _run("k8s", cluster_engine.calculate, request)
    set_cached("k8s", request_dict, result.model_dump(mode="json"))
    return result


@app.post("/v1/vm/calculate", response_model=VMSizingResult)
def vm_calculate(request: VMSizingInput):
    request_dict = request.model_dump(mode="json")
    cached = get_cached("vm", request_dict)
    if cached is not None:
        record_calculation("vm", "cache_hit")
        return VMSizingResult.model_validate(cached)
    result = _run("vm", vm_engine.calculate, request)
    set_cached("vm", request_dict, result.model_dump(mode="json"))
    return result


@app.get("/v1/licensing")
def licensing_distributions():
    """All distribution keys and aliases the licensing registry resolves."""
    return licensing_registry.distributions()


@app.post("/v1/licensing/{distribution}", response_model=LicensingCost)
def licensing_cost(distribution: str, request: LicensingInput):
    return licensing_registry.calculate_licensing_cost(distribution, request)


@app.get("/v1/pricing/{provider}", response_model=CloudPricing)
def pricing(provider: str, region: str | None = None):
    return pricing_registry.get_pricing(provider, region)


def _cluster_cost(body: ClusterCostRequest) -> ClusterCostResponse:
    sizing = cluster_engine.calculate(body.sizing)
    cloud = pricing_registry.get_pricing(body.provider, body.region)
    distro = body.sizing.custom_node_specs or get_distribution(body.sizing.distribution)
    provider = licensing_registry.get(body.sizing.distribution)
    managed_openshift = provider.pricing_model == "managed_openshift"
    # these fees are billed on the cloud invoice as service_fee or control_plane lines
    billed_by_cloud = provider.pricing_model in ("managed_openshift", "managed_control_plane")
    licensing = None
    if body.include_licensing:
        licensing = provider.calculate_licensing_cost(licensing_input_for(sizing, body.support_tier, body.years))
    cost = estimate_cluster_cost(
        sizing,
        cloud,
        licensing_cost=None if billed_by_cloud else licensing,
        managed_control_plane=distro.has_managed_control_plane and not managed_openshift,
        managed_openshift=managed_openshift,
    )
    return ClusterCostResponse(sizing=sizing, licensing=licensing, cost=cost)


@app.post("/v1/cost/k8s", response_model=ClusterCostResponse)
def cost_k8s(body: ClusterCostRequest):
    """Cluster sizing, licensing and monthly/yearly cloud cost in one call."""
    return _run("k8s_cost", _cluster_cost, body)


def _vm_cost(body: VMCostRequest) -> VMCostResponse:
    sizing = vm_engine.calculate(body.sizing)
    cloud = pricing_registry.get_pricing(body.provider, body.region)
    return VMCostResponse(sizing=sizing, cost=estimate_vm_cost(sizing, cloud))


@app.post("/v1/cost/vm", response_model=VMCostResponse)
def cost_vm(body: VMCostRequest):
    return _run("vm_cost", _vm_cost, body)


@app.post("/v1/tiered/brackets")
def tiered_brackets(body: BracketCostRequest):
    """Bracket ladder cost with per-bracket breakdown."""
    items = bracket_breakdown(body.quantity, body.base_allowance, body.brackets)
    return {"cost": sum(i["cost"] for i in items), "brackets": items}


@app.post("/v1/tiered/blocks")
def tiered_blocks(body: BlockCostRequest):
    return {"cost": calculate_block_cost(body.units, body.block_size, body.price_per_block)}


@app.post("/v1/tiered/mendix")
def tiered_mendix(body: MendixCostRequest):
    """Yearly Mendix on Kubernetes platform fee."""
    return mendix_k8s_platform_cost(body.environments, body.internal_users, body.external_users)


@app.post("/v1/tiered/outsystems")
def tiered_outsystems(body: OutSystemsCostRequest):
    """Yearly OutSystems subscription: license, add-ons and services."""
    return outsystems_platform_cost(body)


def _on_prem_cluster_cost(body: OnPremClusterCostRequest) -> ClusterCostResponse:
    sizing = cluster_engine.calculate(body.sizing)
    licensing = None
    if body.include_licensing:
        provider = licensing_registry.get(body.sizing.distribution)
        licensing = provider.calculate_licensing_cost(licensing_input_for(sizing, body.support_tier, body.years))
    cost = estimate_on_prem_cluster_cost(sizing, body.pricing, licensing_cost=licensing)
    return ClusterCostResponse(sizing=sizing, licensing=licensing, cost=cost)


@app.post("/v1/cost/k8s/on-prem", response_model=ClusterCostResponse)
def cost_k8s_on_prem(body: OnPremClusterCostRequest):
    """Cluster sizing priced on owned hardware: amortised servers, data center, staff and licensing."""
    return _run("k8s_on_prem_cost", _on_prem_cluster_cost, body)


def _on_prem_vm_cost(body: OnPremVMCostRequest) -> VMCostResponse:
    sizing = vm_engine.calculate(body.sizing)
    return VMCostResponse(sizing=sizing, cost=estimate_on_prem_vm_cost(sizing, body.pricing))


@app.post("/v1/cost/vm/on-prem", response_model=VMCostResponse)
def cost_vm_on_prem(body: OnPremVMCostRequest):
    return _run("vm_on_prem_cost", _on_prem_vm_cost, body)


def _cluster_growth(body: ClusterGrowthRequest) -> GrowthProjection:
    if body.provider:
        priced = _cluster_cost(ClusterCostRequest(sizing=body.sizing, provider=body.provider, region=body.region))
        sizing, cost = priced.sizing, priced.cost
    else:
        sizing, cost = cluster_engine.calculate(body.sizing), None
    return project_cluster_growth(sizing, body.growth, body.sizing.distribution, cost)


@app.post("/v1/growth/k8s", response_model=GrowthProjection)
def growth_k8s(body: ClusterGrowthRequest):
    """Year-by-year cluster growth, cluster-limit warnings and scaling recommendations."""
    return _run("k8s_growth", _cluster_growth, body)


def _vm_growth(body: VMGrowthRequest) -> GrowthProjection:
    sizing = vm_engine.calculate(body.sizing)
    cost = None
    if body.provider:
        cost = estimate_vm_cost(sizing, pricing_registry.get_pricing(body.provider, body.region))
    return project_vm_growth(sizing, body.growth, cost)


@app.post("/v1/growth/vm", response_model=GrowthProjection)
def growth_vm(body: VMGrowthRequest):
    return _run("vm_growth", _vm_growth, body)
