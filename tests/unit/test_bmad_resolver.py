from techdeputies.bmad.resolver import VariableResolver, create_context, extract_variables, get_nested_value


def test_system_and_template_variables(tmp_path):
    resolver = VariableResolver()
    context = create_context(
        str(tmp_path), user={"id": 5, "name": "Pat", "email": "pat@example.com", "role": "ADMIN"},
        variables={"mode": "quick"},
    )
    out = resolver.resolve("{project-root}|{{user_name}}|{{user_role}}|{{mode}}|{{unknown}}", context)
    assert out == f"{tmp_path}|Pat|ADMIN|quick|{{{{unknown}}}}"


def test_builtin_date_variable(tmp_path):
    out = VariableResolver().resolve("{{date}}", create_context(str(tmp_path)))
    assert len(out) == 10 and out[4] == "-"


def test_config_lookup_before_plain_config_source(bmad_root):
    resolver = VariableResolver()
    context = create_context(str(bmad_root), config_source="bmad.yaml")
    out = resolver.resolve("{config_source}:project.name from {config_source}", context)
    assert out == "Tech Deputies Portal from bmad.yaml"
    # missing keys stay in place
    assert resolver.resolve("{config_source}:project.missing", context) == "{config_source}:project.missing"


def test_unset_system_variables_are_left_alone(tmp_path):
    out = VariableResolver().resolve("{installed_path}/x", create_context(str(tmp_path)))
    assert out == "{installed_path}/x"


def test_resolve_path_anchors_relative_paths():
    resolver = VariableResolver()
    context = create_context("/srv/app", installed_path="/srv/app/_bmad/bmm")
    assert resolver.resolve_path("docs/../out/prd.md", context) == "/srv/app/out/prd.md"
    assert resolver.resolve_path("{installed_path}/workflow.yaml", context) == "/srv/app/_bmad/bmm/workflow.yaml"
    assert resolver.resolve_path("/abs/file", context) == "/abs/file"


def test_validate_and_extract_variables(tmp_path):
    resolver = VariableResolver()
    report = resolver.validate_variables("{project-root} {{missing}} {installed_path}", create_context(str(tmp_path)))
    assert report == {"isValid": False, "unresolvedVariables": ["{installed_path}", "{{missing}}"]}

    found = extract_variables("{project-root} {config_source}:a.b {{x}} {{x}}")
    assert found["templateVars"] == ["{{x}}"]
    assert found["configVars"] == ["{config_source}:a.b"]
    assert found["systemVars"] == ["{project-root}"]


def test_get_nested_value():
    assert get_nested_value({"a": {"b": 1}}, "a.b") == 1
    assert get_nested_value({"a": 1}, "a.b") is None
