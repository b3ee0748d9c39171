from dsbox.core.profiles import (
    JUPYTER,
    STREAMLIT,
    image_repository,
    load_profiles,
    resolve_profile,
)


def test_builtin_profiles() -> None:
    profiles = load_profiles()
    assert [s.name for s in profiles["minimal"].services] == [JUPYTER]
    assert [s.name for s in profiles["extended"].services] == [JUPYTER, STREAMLIT]
    assert profiles["extended"].service(STREAMLIT).default_host_port == 8501


def test_image_repository_strips_registry_and_tag() -> None:
    assert image_repository("ds-extended:latest") == "ds-extended"
    assert image_repository("localhost:5000/team/ds-extended:2024") == "ds-extended"
    assert image_repository("ds-minimal@sha256:abc") == "ds-minimal"


def test_resolve_matches_any_tag() -> None:
    profiles = load_profiles()
    assert resolve_profile("ds-extended:v2", profiles).name == "extended"
    assert resolve_profile("registry.local/ds-minimal", profiles).name == "minimal"


def test_unknown_image_gets_default_services() -> None:
    profile = resolve_profile("python:3.12", load_profiles())
    assert profile.image == "python:3.12"
    assert [s.name for s in profile.services] == [JUPYTER]


def test_config_profiles_add_and_override() -> None:
    profiles = load_profiles(
        {
            "gpu": {"image": "ds-gpu:latest", "services": {"jupyter": 8888, "tensorboard": 6006}},
            "minimal": {"image": "ds-minimal:latest", "services": {}},
        }
    )
    gpu = resolve_profile("ds-gpu:cuda12", profiles)
    assert gpu.name == "gpu"
    assert gpu.service("tensorboard").container_port == 6006
    assert profiles["minimal"].services == ()


def test_invalid_profile_is_skipped() -> None:
    profiles = load_profiles({"broken": {"services": {"jupyter": "not-a-port"}}})
    assert "broken" not in profiles
    assert "minimal" in profiles


def test_out_of_range_service_port_skips_profile() -> None:
    profiles = load_profiles(
        {"gpu": {"image": "ds-gpu:latest", "services": {"tensorboard": 70000}}}
    )
    assert "gpu" not in profiles
    assert resolve_profile("ds-gpu:latest", profiles).services[0].name == JUPYTER
