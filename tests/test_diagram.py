# tests/test_diagram.py

"""
Tests for Diagram composition: DiagramBuilder validation, connection resolution,
exported ports, hierarchical naming and event routing through nested diagrams.
"""

import networkx as nx
import numpy as np
import pytest

from hysim_core import DiagramBuilder, SimulatorConfig, SystemBuildError, simulate
from hysim_core.library import Adder, ConstantSource, ContinuousIntegrator, Gain, PassThrough

from conftest import ConstantVelocity, LogisticSystem


RK4_CONFIG = SimulatorConfig(integrator="rk4", integrator_options={"step_size": 1e-3})


class TestDiagramBuilderValidation:
    """
    Verifies that build() reports every wiring mistake as a SystemBuildError whose
    diagnostic report names the issue code.
    """

    def test_empty_diagram(self):
        with pytest.raises(SystemBuildError, match="DIAG_EMPTY"):
            DiagramBuilder("empty").build()

    def test_required_input_unconnected(self):
        builder = DiagramBuilder("open")
        builder.add_system(Gain(2.0, 1), "gain")
        with pytest.raises(SystemBuildError, match="INPUT_UNCONNECTED") as excinfo:
            builder.build()
        assert "gain.u" in str(excinfo.value)

    def test_optional_input_may_stay_unconnected(self):
        builder = DiagramBuilder("optional")
        system = builder.add_system(ConstantVelocity(), "cv")
        system.declare_input_port("hint", 1, required=False)
        diagram = builder.build()
        assert diagram.num_subsystems == 1

    def test_size_mismatch(self):
        builder = DiagramBuilder("sizes")
        source = builder.add_system(ConstantSource([1.0, 2.0]), "source")
        gain = builder.add_system(Gain(2.0, 1), "gain")
        builder.connect(source.get_output_port("y"), gain.get_input_port("u"))
        with pytest.raises(SystemBuildError, match="CONN_SIZE_MISMATCH"):
            builder.build()

    def test_algebraic_loop(self):
        """VERIFIES: A cycle through direct-feedthrough ports is rejected with the cycle path."""
        builder = DiagramBuilder("loop")
        gain = builder.add_system(Gain(0.5, 1), "gain")
        relay = builder.add_system(PassThrough(1), "relay")
        builder.connect(gain.get_output_port("y"), relay.get_input_port("u"))
        builder.connect(relay.get_output_port("y"), gain.get_input_port("u"))
        with pytest.raises(SystemBuildError, match="CONN_ALGEBRAIC_LOOP") as excinfo:
            builder.build()
        assert "gain.y" in str(excinfo.value) and "relay.y" in str(excinfo.value)

    def test_feedback_through_state_is_not_a_loop(self):
        builder = DiagramBuilder("decay")
        integrator = builder.add_system(ContinuousIntegrator(1, [1.0]), "integrator")
        gain = builder.add_system(Gain(-1.0, 1), "gain")
        builder.connect(integrator.get_output_port("y"), gain.get_input_port("u"))
        builder.connect(gain.get_output_port("y"), integrator.get_input_port("u"))
        diagram = builder.build()
        assert nx.is_directed_acyclic_graph(diagram.port_graph)

    def test_foreign_system(self):
        builder = DiagramBuilder("foreign")
        gain = builder.add_system(Gain(1.0, 1), "gain")
        outsider = ConstantSource(1.0, name="outsider")
        builder.connect(outsider.get_output_port("y"), gain.get_input_port("u"))
        with pytest.raises(SystemBuildError, match="CONN_FOREIGN_SYSTEM"):
            builder.build()

    def test_input_driven_twice(self):
        builder = DiagramBuilder("twice")
        a = builder.add_system(ConstantSource(1.0), "a")
        b = builder.add_system(ConstantSource(2.0), "b")
        gain = builder.add_system(Gain(1.0, 1), "gain")
        builder.connect(a.get_output_port("y"), gain.get_input_port("u"))
        builder.connect(b.get_output_port("y"), gain.get_input_port("u"))
        with pytest.raises(SystemBuildError, match="CONN_INPUT_MULTIPLY_DRIVEN"):
            builder.build()

    def test_duplicate_subsystem_names(self):
        builder = DiagramBuilder("names")
        builder.add_system(ConstantSource(1.0))
        builder.add_system(ConstantSource(2.0))
        with pytest.raises(SystemBuildError, match="SYS_NAME_DUPLICATE"):
            builder.build()

    def test_system_owned_by_another_diagram(self):
        first = DiagramBuilder("first")
        source = first.add_system(ConstantSource(1.0), "source")
        first.build()

        second = DiagramBuilder("second")
        second.add_system(source)
        with pytest.raises(SystemBuildError, match="SYS_ALREADY_OWNED"):
            second.build()

    def test_builder_cannot_be_reused(self):
        builder = DiagramBuilder("once")
        builder.add_system(ConstantSource(1.0), "source")
        builder.build()
        with pytest.raises(SystemBuildError, match="DIAG_BUILDER_REUSED"):
            builder.build()

    def test_all_errors_reported_together(self):
        builder = DiagramBuilder("many")
        source = builder.add_system(ConstantSource([1.0, 2.0]), "source")
        gain = builder.add_system(Gain(1.0, 1), "gain")
        builder.add_system(PassThrough(1), "relay")
        builder.connect(source.get_output_port("y"), gain.get_input_port("u"))
        with pytest.raises(SystemBuildError) as excinfo:
            builder.build()
        report = str(excinfo.value)
        assert "CONN_SIZE_MISMATCH" in report
        assert "INPUT_UNCONNECTED" in report


class TestDiagramEvaluation:

    def test_connections_resolve_through_the_context(self):
        builder = DiagramBuilder("sum")
        a = builder.add_system(ConstantSource(1.5), "a")
        b = builder.add_system(ConstantSource(2.5), "b")
        adder = builder.add_system(Adder(2, 1), "adder")
        gain = builder.add_system(Gain(2.0, 1), "gain")
        builder.connect(a.get_output_port("y"), adder.get_input_port("u0"))
        builder.connect(b.get_output_port("y"), adder.get_input_port("u1"))
        builder.connect(adder.get_output_port("sum"), gain.get_input_port("u"))
        builder.export_output(gain.get_output_port("y"), "y")
        diagram = builder.build()

        context = diagram.create_default_context()
        np.testing.assert_allclose(diagram.calc_output(context, "y"), [8.0])
        assert diagram.get_output_port("y").feedthrough == ()

    def test_exported_input_fans_out(self):
        builder = DiagramBuilder("fanout")
        double = builder.add_system(Gain(2.0, 1), "double")
        triple = builder.add_system(Gain(3.0, 1), "triple")
        index = builder.export_input(double.get_input_port("u"), "u")
        builder.connect_input("u", triple.get_input_port("u"))
        builder.export_output(double.get_output_port("y"), "doubled")
        builder.export_output(triple.get_output_port("y"), "tripled")
        diagram = builder.build()

        context = diagram.create_default_context()
        context.fix_input_port(index, [1.5])
        np.testing.assert_allclose(diagram.calc_output(context, "doubled"), [3.0])
        np.testing.assert_allclose(diagram.calc_output(context, "tripled"), [4.5])
        assert diagram.get_output_port("tripled").feedthrough == (0,)

    def test_connect_input_unknown_name(self):
        builder = DiagramBuilder("unknown")
        gain = builder.add_system(Gain(2.0, 1), "gain")
        with pytest.raises(KeyError, match="no exported input"):
            builder.connect_input("missing", gain.get_input_port("u"))

    def test_feedback_diagram_simulates_exponential_decay(self):
        builder = DiagramBuilder("decay")
        integrator = builder.add_system(ContinuousIntegrator(1, [1.0]), "integrator")
        gain = builder.add_system(Gain(-1.0, 1), "gain")
        builder.connect(integrator.get_output_port("y"), gain.get_input_port("u"))
        builder.connect(gain.get_output_port("y"), integrator.get_input_port("u"))
        diagram = builder.build()

        result = simulate(diagram, end_time=1.0, config=RK4_CONFIG)
        assert result.outcome.is_completed
        np.testing.assert_allclose(result.final_context.get_continuous_state_vector(), [np.exp(-1.0)], rtol=1e-9)

    def test_subsystem_lookup_and_names(self):
        builder = DiagramBuilder("plant")
        cv = builder.add_system(ConstantVelocity(), "cart")
        diagram = builder.build()
        assert diagram.get_subsystem_by_name("cart") is cv
        assert cv.fqn == "plant.cart"
        assert cv.parent is diagram
        with pytest.raises(KeyError):
            diagram.get_subsystem_by_name("missing")


class TestHierarchy:

    @staticmethod
    def _nested():
        inner_builder = DiagramBuilder("inner")
        cart = inner_builder.add_system(ConstantVelocity(), "cart")
        scale = inner_builder.add_system(Gain(10.0, 1), "scale")
        inner_builder.export_input(scale.get_input_port("u"), "u")
        inner_builder.export_output(scale.get_output_port("y"), "scaled")
        inner = inner_builder.build()

        outer_builder = DiagramBuilder("outer")
        source = outer_builder.add_system(ConstantSource(0.5), "source")
        outer_builder.add_system(inner)
        outer_builder.connect(source.get_output_port("y"), inner.get_input_port("u"))
        outer_builder.export_output(inner.get_output_port("scaled"), "y")
        return outer_builder.build(), inner, cart

    def test_fully_qualified_names(self):
        outer, inner, cart = self._nested()
        assert cart.fqn == "outer.inner.cart"
        assert inner.fqn == "outer.inner"

    def test_nested_outputs_and_contexts(self):
        outer, inner, cart = self._nested()
        context = outer.create_default_context()
        np.testing.assert_allclose(outer.calc_output(context, "y"), [5.0])
        cart_context = outer.get_subsystem_context(cart, context)
        assert cart_context.system is cart
        np.testing.assert_array_equal(cart_context.get_continuous_state(), [-0.5])

    def test_events_route_to_the_owning_leaf(self):
        """VERIFIES: A witness of a leaf nested two levels deep triggers and is logged under its full name."""
        outer, _, _ = self._nested()
        result = simulate(outer, end_time=1.0)
        assert result.outcome.is_completed
        assert len(result.event_log) == 1
        record = result.event_log[0]
        assert record.system_fqn == "outer.inner.cart"
        assert record.witness_name == "x_zero"
        assert record.time == pytest.approx(0.5, abs=1e-6)


class TestCompositionIndependence:

    def test_leaf_trajectory_unchanged_by_unrelated_siblings(self):
        """VERIFIES: Placing a leaf in a diagram with an unrelated sibling does not change its trajectory or events."""
        alone = ConstantVelocity(velocity=2.0, x0=-1.0)
        solo = simulate(alone, end_time=1.0, config=RK4_CONFIG)

        builder = DiagramBuilder("pair")
        cart = builder.add_system(ConstantVelocity(velocity=2.0, x0=-1.0), "cart")
        builder.add_system(LogisticSystem(), "logistic")
        diagram = builder.build()
        paired = simulate(diagram, end_time=1.0, config=RK4_CONFIG)

        cart_context = diagram.get_subsystem_context(cart, paired.final_context)
        np.testing.assert_allclose(
            cart_context.get_continuous_state(), solo.final_context.get_continuous_state(), rtol=1e-12
        )
        assert [r.time for r in paired.event_log] == pytest.approx([r.time for r in solo.event_log], abs=1e-12)
