"""Tests for VM fleet sizing."""
import pytest

from infrasizing.errors import ConfigurationInconsistency, UnsupportedTechnology
from infrasizing.models import (
    AppTier,
    EnvironmentType,
    HAPattern,
    LoadBalancerOption,
    ServerRole,
    VMEnvironmentConfig,
    VMRoleConfig,
    VMSizingInput,
)
from infrasizing.vm_sizing import VMSizingEngine


@pytest.fixture
def engine():
    return VMSizingEngine()


def _single_env(config: VMEnvironmentConfig, technology="dotnet", overhead=15, env=EnvironmentType.PROD):
    return VMSizingInput(
        technology=technology,
        environment_configs={env: config},
        enabled_environments=[env],
        system_overhead_percent=overhead,
    )


def test_active_active_with_ha_pair(engine):
    """2 web VMs doubled to 4 (4 cpu/8 GB each) + 2 LB VMs (2/4), then +15% overhead."""
    config = VMEnvironmentConfig(
        roles=[VMRoleConfig(role=ServerRole.WEB, instance_count=2)],
        ha_pattern=HAPattern.ACTIVE_ACTIVE,
        load_balancer=LoadBalancerOption.HA_PAIR,
    )
    result = engine.calculate(_single_env(config))
    env = result.environments[0]
    web = env.roles[0]
    assert web.role_name == "Web Server"
    assert web.total_instances == 4
    assert web.total_cpu == 16
    assert env.total_vms == 6
    # (16 + 4) * 1.15, (32 + 8) * 1.15
    assert env.total_cpu == 23
    assert env.total_ram == 46
    # 4 * 100 GB + 100 GB environment storage
    assert env.total_disk == 500
    assert result.grand_total.total_load_balancer_vms == 2


def test_overhead_rounds_up(engine):
    config = VMEnvironmentConfig(roles=[VMRoleConfig(role=ServerRole.APP, size=AppTier.SMALL)])
    env = engine.calculate(_single_env(config, overhead=10)).environments[0]
    # 2 * 1.1 = 2.2 -> 3, 4 * 1.1 = 4.4 -> 5
    assert env.total_cpu == 3
    assert env.total_ram == 5


@pytest.mark.parametrize(
    "pattern,count,expected",
    [
        (HAPattern.NONE, 3, 3),
        (HAPattern.ACTIVE_PASSIVE, 3, 6),
        (HAPattern.N_PLUS_1, 3, 5),
        (HAPattern.N_PLUS_2, 3, 5),
        (HAPattern.N_PLUS_2, 1, 2),
    ],
)
def test_ha_multipliers(engine, pattern, count, expected):
    config = VMEnvironmentConfig(roles=[VMRoleConfig(role=ServerRole.APP, instance_count=count)], ha_pattern=pattern)
    env = engine.calculate(_single_env(config, overhead=0)).environments[0]
    assert env.roles[0].total_instances == expected


def test_non_scalable_role_runs_once(engine):
    config = VMEnvironmentConfig(
        roles=[VMRoleConfig(role=ServerRole.DATABASE, instance_count=3, scalable=False)],
        ha_pattern=HAPattern.ACTIVE_ACTIVE,
    )
    role = engine.calculate(_single_env(config, overhead=0)).environments[0].roles[0]
    assert role.base_instances == 3
    assert role.total_instances == 1


def test_heavy_memory_technology(engine):
    assert engine.get_role_specs(ServerRole.WEB, AppTier.MEDIUM, "dotnet") == (4, 8)
    assert engine.get_role_specs(ServerRole.WEB, AppTier.MEDIUM, "java") == (4, 12)
    assert engine.get_role_specs(ServerRole.DATABASE, AppTier.LARGE, "mendix") == (16, 96)


def test_bastion_is_fixed_size(engine):
    for tier in AppTier:
        assert engine.get_role_specs(ServerRole.BASTION, tier, "dotnet") == (2, 4)


def test_custom_cpu_and_ram(engine):
    config = VMEnvironmentConfig(
        roles=[VMRoleConfig(role=ServerRole.CACHE, custom_cpu=6, custom_ram=48, role_name="Redis")]
    )
    role = engine.calculate(_single_env(config, overhead=0)).environments[0].roles[0]
    assert role.role_name == "Redis"
    assert (role.cpu_per_instance, role.ram_per_instance) == (6, 48)


def test_cloud_lb_adds_no_vms(engine):
    assert engine.get_load_balancer_specs(LoadBalancerOption.CLOUD_LB) == (0, 0, 0)
    assert engine.get_load_balancer_specs(LoadBalancerOption.SINGLE) == (1, 2, 4)


def test_disabled_environment_is_skipped(engine):
    request = VMSizingInput(
        environment_configs={
            EnvironmentType.DEV: VMEnvironmentConfig(enabled=False),
            EnvironmentType.PROD: VMEnvironmentConfig(roles=[VMRoleConfig(role=ServerRole.WEB)]),
        },
        enabled_environments=[EnvironmentType.PROD, EnvironmentType.DEV],
    )
    result = engine.calculate(request)
    assert [e.environment for e in result.environments] == [EnvironmentType.PROD]
    assert result.grand_total.total_vms == 1


def test_grand_total_sums_environments(engine):
    roles = [VMRoleConfig(role=ServerRole.WEB), VMRoleConfig(role=ServerRole.DATABASE, size=AppTier.LARGE)]
    request = VMSizingInput(
        environment_configs={
            EnvironmentType.DEV: VMEnvironmentConfig(roles=roles),
            EnvironmentType.PROD: VMEnvironmentConfig(
                roles=roles, ha_pattern=HAPattern.N_PLUS_1, load_balancer=LoadBalancerOption.SINGLE
            ),
        },
        enabled_environments=[EnvironmentType.DEV, EnvironmentType.PROD],
    )
    result = engine.calculate(request)
    total = result.grand_total
    assert total.total_vms == sum(e.total_vms for e in result.environments)
    assert total.total_cpu == sum(e.total_cpu for e in result.environments)
    assert total.total_disk == sum(e.total_disk for e in result.environments)
    assert total.total_load_balancer_vms == 1


def test_missing_environment_config(engine):
    request = VMSizingInput(environment_configs={}, enabled_environments=[EnvironmentType.PROD])
    with pytest.raises(ConfigurationInconsistency):
        engine.calculate(request)


def test_environment_without_roles(engine):
    with pytest.raises(ConfigurationInconsistency):
        engine.calculate(_single_env(VMEnvironmentConfig(roles=[])))


def test_unknown_technology(engine):
    config = VMEnvironmentConfig(roles=[VMRoleConfig(role=ServerRole.WEB)])
    with pytest.raises(UnsupportedTechnology):
        engine.calculate(_single_env(config, technology="fortran"))


def test_overhead_out_of_range_rejected():
    with pytest.raises(ValueError):
        VMSizingInput(system_overhead_percent=60)
