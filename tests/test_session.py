"""Tests for the interactive session: editing, commands and persistence."""

import pytest

from unitcalc_pkg import config
from unitcalc_pkg.context import AngleMode
from unitcalc_pkg.session import Session


@pytest.fixture
def session():
    return Session(persist=False)


def run(session, *lines):
    """Execute every line and return the output of the last one."""
    output = []
    for line in lines:
        output = session.execute(line)
    return output


class TestExpressions:
    def test_plain_expression(self, session):
        assert session.execute("230[V]*16[A]") == ["3.68[kW]"]
        assert session.execute("2+2") == ["4"]

    def test_blank_line(self, session):
        assert session.execute("   ") == []

    def test_error_lines(self, session):
        output = session.execute("2+*3")
        assert len(output) == 1
        assert output[0].startswith("Error:")

    def test_binding_at_base(self, session):
        assert session.execute("x = 5") == ["x = 5"]
        assert session.execute("x*2") == ["10"]
        assert not session.editing

    def test_declaration(self, session):
        assert session.execute("k := 3") == ["k = 3"]
        assert session.execute("k^2") == ["9"]

    def test_left_side_must_be_a_variable(self, session):
        assert session.execute("3 = 4")[0].startswith("Error:")

    def test_self_reference(self, session):
        assert session.execute("x = x+1") == ["Error: Variable x cannot refer to itself"]

    def test_memory(self, session):
        run(session, "2+2")
        assert session.execute("list mem") == ["mem[0] = 4"]
        assert session.execute("mem+1") == ["5"]
        assert session.execute("mem[1]*2") == ["8"]

    def test_command_word_used_as_variable(self, session):
        run(session, "list = 4")
        assert session.execute("list *3") == ["12"]


class TestEditing:
    def test_missing_variables_open_an_editor(self, session):
        assert session.execute("a*b") == ["a*b", "Missing variables: a, b"]
        assert session.editing
        assert session.execute("a = 2") == ["a = 2", "Missing variables: b"]
        assert session.execute("b = 3") == ["b = 3", "a*b = 6"]

    def test_missing_variables_of_bound_values(self, session):
        run(session, "p+1")
        assert session.execute("p = q") == ["p = q", "Missing variables: q"]
        assert session.execute("q = 2") == ["q = 2", "p+1 = 3"]

    def test_mutual_bindings_do_not_hang(self, session):
        run(session, "a+b", "a = b")
        assert session.execute("b = a")[0].startswith("Error:")

    def test_bindings_stay_in_the_editor(self, session):
        run(session, "a*b", "a = 2", "b = 3", "drop")
        assert not session.editing
        assert session.execute("list vars") == ["No variables"]

    def test_target_binding(self, session):
        run(session, "x*2")
        assert session.execute("@x") == ["Target set to x"]
        assert session.execute("5") == ["x = 5", "x*2 = 10"]

    def test_drop_requires_editor(self, session):
        assert session.execute("drop") == ["Error: No expression is being edited"]

    def test_stash_and_restore(self, session):
        run(session, "a*b", "a = 2")
        assert session.execute("stash") == ["Stashed a*b"]
        assert not session.editing
        assert session.execute("list stash") == ["0: a*b"]
        assert session.execute("restore") == ["Restored a*b", "Missing variables: b"]
        assert session.execute("restore") == ["Error: Stash is empty"]

    def test_eval(self, session):
        run(session, "a+1", "a = 1")
        assert session.execute("eval") == ["a+1 = 2"]

    def test_list_stack(self, session):
        run(session, "a+1")
        assert session.execute("list stack") == ["1: a+1"]

    def test_auto_eval_off(self, session):
        session.auto_eval = False
        run(session, "a+1")
        assert session.execute("a = 1") == ["a = 1"]

    def test_clear_stack(self, session):
        run(session, "a+1", "clear stack")
        assert not session.editing


class TestConstantsAndModes:
    def test_set_and_use(self, session):
        assert session.execute("set g 9.81") == ["g = 9.81"]
        assert session.execute("g*2") == ["19.62"]
        assert "g = 9.81" in session.execute("list constant")

    def test_builtin_is_read_only(self, session):
        assert session.execute("set pi 3")[0].startswith("Error:")
        assert session.execute("unset e")[0].startswith("Error:")

    def test_unset(self, session):
        run(session, "set g 9.81")
        assert session.execute("unset g") == ["Removed constant g"]
        assert session.execute("unset g")[0].startswith("Error:")

    def test_angle_mode(self, session):
        assert session.execute("mode") == ["Angle mode: deg"]
        assert session.execute("mode rad") == ["Angle mode: rad"]
        assert session.execute("sin(90)") == ["1"]
        assert session.execute("mode turns")[0].startswith("Error:")

    def test_angle_mode_argument(self):
        assert Session(persist=False, angle_mode=AngleMode.GRAD).base.angle_mode is AngleMode.GRAD


class TestUnitCommands:
    def test_define_units_and_relation(self, session):
        assert session.execute("unit mech N Newton") == ["Defined unit N (Newton) in mech"]
        run(session, "unit mech m Metre", "unit mech J Joule")
        assert session.execute("relation mech N*m=J") == ["Declared N*m=J in mech"]
        assert session.execute("2[N]*3[m]") == ["6[J]"]

    def test_relation_with_unknown_unit(self, session):
        run(session, "unit mech N")
        assert session.execute("relation mech N*q=J")[0].startswith("Error:")

    def test_enable_and_disable(self, session):
        assert session.execute("enable nautical")[0].startswith("Error:")
        assert session.execute("disable electric") == ["Enabled: none"]
        assert session.execute("2[V]")[0].startswith("Error:")
        assert session.execute("enable electric") == ["Enabled: electric"]
        assert session.execute("2[V]") == ["2[V]"]

    def test_list_packs_and_units(self, session):
        assert session.execute("list packs") == ["electric (7 units) [enabled]"]
        assert "V (Volt) in electric" in session.execute("list units")
        assert session.execute("list enabled") == ["electric"]


class TestFunctions:
    def define_power(self, session):
        run(session, "U*I", "U = 230")
        assert session.execute("save power") == ["Saved function power"]
        run(session, "drop")

    def test_save_and_call(self, session):
        self.define_power(session)
        assert session.execute("$power{I=2}") == ["460"]
        assert session.execute("list func") == ["power: U*I (U=230)"]

    def test_call_with_missing_parameter(self, session):
        self.define_power(session)
        assert session.execute("$power") == ["$power", "Missing variables: I"]

    def test_save_requires_editor(self, session):
        assert session.execute("save power") == ["Error: No expression is being edited"]

    def test_edit(self, session):
        self.define_power(session)
        assert session.execute("edit power") == ["Editing power: U*I", "Missing variables: I"]
        assert session.execute("I = 2") == ["I = 2", "U*I = 460"]

    def test_load_without_persistence(self, session):
        self.define_power(session)
        assert session.execute("load power")[0] == "Loaded power: U*I"

    def test_rename_and_delete(self, session):
        self.define_power(session)
        assert session.execute("rename power watts") == ["Renamed power to watts"]
        assert session.execute("list func") == ["watts: U*I (U=230)"]
        assert session.execute("delete watts") == ["Deleted function watts"]
        assert session.execute("list func") == ["No functions"]
        assert session.execute("delete watts")[0].startswith("Error:")


class TestSolveCommand:
    def test_solve_stored_function(self, session, monkeypatch):
        monkeypatch.setattr(config, "VERIFY_SOLUTIONS", True)
        run(session, "U*I", "U = 230", "save power", "drop")
        assert session.execute("solve I P power") == [
            "I = P/U",
            "Verified",
            "Missing variables: P, U",
        ]
        assert session.editing

    def test_solve_current_expression(self, session, monkeypatch):
        monkeypatch.setattr(config, "VERIFY_SOLUTIONS", False)
        run(session, "x^2")
        assert session.execute("solve x y") == ["x = sqrt(y)", "Missing variables: y"]
        assert session.execute("y = 16") == ["y = 16", "sqrt(y) = 4"]

    def test_target_not_found(self, session):
        run(session, "a+b")
        assert session.execute("solve c y") == ["Error: Variable c was not found in function"]

    def test_unsupported_inversion(self, session):
        run(session, "2^x")
        assert session.execute("solve x y")[0].startswith("Error:")

    def test_usage(self, session):
        assert session.execute("solve x")[0].startswith("Error: Usage")


class TestOutputCommands:
    def test_latex(self, session):
        assert session.execute("latex frac(a)(b)") == [r"\frac{\text{a}}{\text{b}}"]

    def test_latex_of_edited_expression(self, session):
        run(session, "a^2")
        assert session.execute("latex") == [r"\text{a}^{2}"]

    def test_ascii_graph(self, session):
        output = session.execute("graph --ascii x^2")
        assert output[0] == "ASCII plot:"
        assert len(output) > 1

    def test_graph_of_stored_function(self, session):
        run(session, "x*k", "k = 2", "save double", "drop")
        assert session.execute("graph --ascii double")[0] == "ASCII plot:"

    def test_graph_error(self, session):
        assert session.execute("graph --ascii x*q")[0].startswith("Error:")

    def test_help_and_exit(self, session):
        assert session.execute("help")[0].startswith("Enter an expression")
        assert session.execute("exit") == []
        assert not session.running


class TestPersistence:
    def test_state_survives_restart(self, tmp_path):
        first = Session(data_dir=tmp_path)
        run(first, "set g 9.81", "unit mech N Newton", "mode grad")
        run(first, "U*I", "U = 230", "save power")
        assert (tmp_path / "power.math").read_text() == "U*I\nU = 230\n"
        assert (tmp_path / "mech.units" / "N.unit").exists()

        second = Session(data_dir=tmp_path)
        assert second.base.constants["g"] == 9.81
        assert second.base.angle_mode is AngleMode.GRAD
        assert "power" in second.functions
        assert second.registry.has_catalog("mech")
        assert second.execute("$power{I=2}") == ["460"]

    def test_solved_function_survives_restart(self, tmp_path, monkeypatch):
        monkeypatch.setattr(config, "VERIFY_SOLUTIONS", False)
        first = Session(data_dir=tmp_path)
        run(first, "5*x+3", "solve x y")
        assert first.execute("y = 13") == ["y = 13", "y-3/5 = 2"]
        run(first, "save inv")
        assert (tmp_path / "inv.math").read_text() == "(y-3)/5\ny = 13\n"

        second = Session(data_dir=tmp_path)
        assert second.execute("load inv") == ["Loaded inv: (y-3)/5", "(y-3)/5 = 2"]
        assert second.execute("$inv{y=28}") == ["5"]

    def test_delete_removes_file(self, tmp_path):
        session = Session(data_dir=tmp_path)
        run(session, "U*I", "save power", "drop")
        run(session, "delete power")
        assert not (tmp_path / "power.math").exists()

    def test_load_reads_file(self, tmp_path):
        (tmp_path / "area.math").write_text("a*b\nb = 2\n")
        session = Session(data_dir=tmp_path)
        assert session.execute("load area") == ["Loaded area: a*b", "Missing variables: a"]

    def test_no_persist_writes_nothing(self, tmp_path):
        session = Session(data_dir=tmp_path, persist=False)
        run(session, "set g 9.81", "mode rad", "exit")
        assert list(tmp_path.iterdir()) == []
