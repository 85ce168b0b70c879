"""Tests for DAG reconstruction."""

import networkx as nx
import numpy as np
import pandas as pd
import pytest

from findr_analysis.analysis.dag import dag_to_graph, dagfindr


@pytest.fixture
def cycle_edges() -> pd.DataFrame:
    """Three genes in a cycle of decreasing confidence."""
    return pd.DataFrame({
        "Source": ["C", "A", "B"],
        "Target": ["A", "B", "C"],
        "Probability": [0.7, 0.9, 0.8],
    })


@pytest.fixture
def dense_edges() -> pd.DataFrame:
    """All ordered pairs of eight genes with random probabilities."""
    rng = np.random.default_rng(5)
    genes = [f"G{i}" for i in range(8)]
    rows = [(u, v) for u in genes for v in genes if u != v]
    df = pd.DataFrame(rows, columns=["Source", "Target"])
    df["Probability"] = rng.uniform(size=len(df))
    return df


class TestDagfindr:
    """Tests for dagfindr."""

    def test_greedy_breaks_weakest_cycle_edge(self, cycle_edges: pd.DataFrame) -> None:
        """Test the least probable edge of a cycle is dropped."""
        dag = dagfindr(cycle_edges)

        assert list(dag["Probability"]) == [0.9, 0.8, 0.7]
        assert list(dag["inDAG"]) == [True, True, False]

    def test_heuristic_orders_by_net_mass(self, cycle_edges: pd.DataFrame) -> None:
        """Test the heuristic keeps edges from high to low net outgoing mass."""
        dag = dagfindr(cycle_edges, method="heuristic")
        assert list(dag["inDAG"]) == [True, True, False]

    @pytest.mark.parametrize("method", ["greedy", "heuristic"])
    def test_result_is_acyclic(self, dense_edges: pd.DataFrame, method: str) -> None:
        """Test the marked edges form a DAG."""
        dag = dagfindr(dense_edges, method=method)
        graph = dag_to_graph(dag)

        assert nx.is_directed_acyclic_graph(graph)
        assert graph.number_of_edges() == int(dag["inDAG"].sum())

    def test_greedy_is_maximal(self, dense_edges: pd.DataFrame) -> None:
        """Test every dropped edge would close a cycle."""
        dag = dagfindr(dense_edges)
        graph = dag_to_graph(dag)

        # Eight genes in a complete digraph give a full tournament order
        assert graph.number_of_edges() == 8 * 7 // 2
        for u, v in zip(dag.loc[~dag["inDAG"], "Source"], dag.loc[~dag["inDAG"], "Target"]):
            assert nx.has_path(graph, v, u)

    def test_self_edges_dropped(self) -> None:
        """Test self edges are never kept."""
        df = pd.DataFrame({"Source": ["A", "A"], "Target": ["A", "B"], "Probability": [1.0, 0.5]})
        dag = dagfindr(df)
        assert list(dag["inDAG"]) == [False, True]

    def test_input_unchanged(self, cycle_edges: pd.DataFrame) -> None:
        """Test the input table is not modified."""
        before = cycle_edges.copy()
        dagfindr(cycle_edges)
        pd.testing.assert_frame_equal(cycle_edges, before)

    def test_custom_columns(self) -> None:
        """Test other column names can be used."""
        df = pd.DataFrame({"from": ["A", "B"], "to": ["B", "A"], "w": [0.4, 0.6]})
        dag = dagfindr(df, source="from", target="to", weight="w")
        assert list(dag["inDAG"]) == [True, False]

    def test_missing_column_raises(self, cycle_edges: pd.DataFrame) -> None:
        """Test a missing weight column is rejected."""
        with pytest.raises(ValueError, match="not found"):
            dagfindr(cycle_edges, weight="qvalue")

    def test_unknown_method_raises(self, cycle_edges: pd.DataFrame) -> None:
        """Test unknown methods are rejected."""
        with pytest.raises(ValueError, match="Unknown DAG method"):
            dagfindr(cycle_edges, method="exact")


class TestDagToGraph:
    """Tests for dag_to_graph."""

    def test_weights(self, cycle_edges: pd.DataFrame) -> None:
        """Test edge weights come from the probability column."""
        graph = dag_to_graph(cycle_edges)

        assert graph.number_of_edges() == 3
        assert graph["A"]["B"]["weight"] == 0.9

    def test_only_marked_edges(self, cycle_edges: pd.DataFrame) -> None:
        """Test unmarked edges are left out."""
        graph = dag_to_graph(dagfindr(cycle_edges))
        assert not graph.has_edge("C", "A")
