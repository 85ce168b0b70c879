"""Findr entry points: coexpression, association and causal inference.

``findr_matrix`` works on plain arrays and returns posterior probability
matrices with one row per source. ``findr`` works on DataFrames and returns
long result tables with Bayesian q-values, optionally filtered at an FDR
threshold.

Three analyses are selected by the inputs:

- ``X`` only: coexpression, test "corr" of each source gene against all genes
- ``X`` and ``G``: association, test "link" of each variant against all genes
- ``X``, ``G`` and ``pairs``: causal inference, tests 2-5 of each
  (eQTL, gene A) pair against all other genes B, combined into one
  probability of A -> B
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
import pandas as pd

from findr_analysis.analysis.llr import real_llr_col
from findr_analysis.analysis.mixdist import posterior_probs
from findr_analysis.preprocessing.genotypes import encode_genotypes
from findr_analysis.preprocessing.phenotypes import supernormalize
from findr_analysis.utils.config import COMBINATIONS, PosteriorConfig
from findr_analysis.utils.logging import get_logger
from findr_analysis.utils.validators import ValidationError, validate_sample_consistency

logger = get_logger(__name__)

CAUSAL_TESTS = ("link", "med", "relev", "pleio")
PROBABILITY_COLUMNS = ("Probability2", "Probability3", "Probability4", "Probability5")


def combine_probs(
    p2: np.ndarray,
    p3: np.ndarray,
    p4: np.ndarray,
    p5: np.ndarray,
    combination: str = "IV",
) -> np.ndarray:
    """
    Combine the posteriors of tests 2-5 into a causal probability.

    - "IV": P2 * P5 (instrumental variable; robust to hidden confounders)
    - "mediation": P2 * P3 (traditional mediation test)
    - "orig": (P2 * P5 + P4) / 2
    - "none": the four posteriors stacked along a new first axis

    Args:
        p2: Linkage posteriors.
        p3: Conditional independence posteriors.
        p4: Relevance posteriors.
        p5: Pleiotropy posteriors.
        combination: Combination name.

    Returns:
        Combined probabilities.
    """
    if combination == "IV":
        return p2 * p5
    if combination == "mediation":
        return p2 * p3
    if combination == "orig":
        return 0.5 * (p2 * p5 + p4)
    if combination == "none":
        return np.stack([p2, p3, p4, p5])
    raise ValueError(f"Unknown combination: {combination}. Expected one of {COMBINATIONS}")


def _prepare_expression(X: np.ndarray, normalize: bool) -> np.ndarray:
    X = np.asarray(X, dtype=float)
    if X.ndim != 2:
        raise ValueError(f"Expression must be a samples x genes matrix, got {X.ndim} dimensions")
    if np.isnan(X).any():
        raise ValueError("Expression data contains missing values")
    if X.shape[0] < 4:
        raise ValueError(f"At least 4 samples are required, got {X.shape[0]}")
    return supernormalize(X) if normalize else X


def _sources(cols: Sequence[int] | None, n: int) -> np.ndarray:
    if cols is None:
        return np.arange(n)
    cols = np.asarray(cols, dtype=np.intp).ravel()
    if cols.size and (cols.min() < -n or cols.max() >= n):
        raise IndexError(f"Source indices out of range for {n} sources")
    return np.where(cols < 0, cols + n, cols)


def _check_groups(ns: int, ng: int) -> None:
    if ns <= ng + 1:
        raise ValueError(
            f"{ns} samples are too few for a genotype with {ng} groups"
        )


def findr_matrix(
    X: np.ndarray,
    G: np.ndarray | None = None,
    pairs: np.ndarray | None = None,
    *,
    cols: Sequence[int] | None = None,
    method: str = "moments",
    combination: str = "IV",
    normalize: bool = True,
    config: PosteriorConfig | None = None,
) -> np.ndarray:
    """
    Posterior probabilities on plain matrices.

    Args:
        X: Expression, samples x genes.
        G: Genotypes, samples x variants (categorical values).
        pairs: Integer array of (variant index, gene index) rows, the
            cis-eQTL of each source gene A.
        cols: Positions of the sources to test: genes (coexpression),
            variants (association) or rows of ``pairs`` (causal).
        method: "moments" or "kde".
        combination: How tests 2-5 are combined in causal inference.
        normalize: Whether to supernormalize X first.
        config: KDE and pi0 settings.

    Returns:
        Sources x genes probabilities. Self pairs are 0. With combination
        "none", an array of shape (4, sources, genes) for tests 2-5.
    """
    config = config or PosteriorConfig()
    Y = _prepare_expression(X, normalize)
    ns, ng = Y.shape

    if G is None:
        if pairs is not None:
            raise ValueError("Causal inference needs genotypes")
        return _coexpression_matrix(Y, _sources(cols, ng), method, config)

    codes, n_groups = encode_genotypes(G)
    if codes.shape[0] != ns:
        raise ValueError(f"Genotypes have {codes.shape[0]} samples, expression has {ns}")

    if pairs is None:
        return _association_matrix(Y, codes, n_groups, _sources(cols, codes.shape[1]), method, config)

    pairs = np.asarray(pairs, dtype=np.intp).reshape(-1, 2)
    if combination not in COMBINATIONS:
        raise ValueError(f"Unknown combination: {combination}. Expected one of {COMBINATIONS}")
    return _causal_matrix(
        Y, codes, n_groups, pairs[_sources(cols, len(pairs))], method, combination, config
    )


def _coexpression_matrix(
    Y: np.ndarray,
    sources: np.ndarray,
    method: str,
    config: PosteriorConfig,
) -> np.ndarray:
    ns, ng = Y.shape
    P = np.zeros((len(sources), ng))
    targets = np.arange(ng)

    for i, a in enumerate(sources):
        llr = real_llr_col(Y, Y[:, a])
        mask = targets != a
        P[i, mask] = posterior_probs(llr[mask], ns, 1, "corr", method, config)

    logger.debug(f"Coexpression posteriors for {len(sources)} sources x {ng} genes")
    return P


def _association_matrix(
    Y: np.ndarray,
    codes: np.ndarray,
    n_groups: np.ndarray,
    sources: np.ndarray,
    method: str,
    config: PosteriorConfig,
) -> np.ndarray:
    ns, ng = Y.shape
    P = np.zeros((len(sources), ng))

    for i, e in enumerate(sources):
        nv = int(n_groups[e])
        if nv < 2:
            logger.warning(f"Variant {e} is monomorphic; probabilities set to 0")
            continue
        _check_groups(ns, nv)
        llr = real_llr_col(Y, genotype=codes[:, e])
        P[i] = posterior_probs(llr, ns, nv, "link", method, config)

    logger.debug(f"Association posteriors for {len(sources)} variants x {ng} genes")
    return P


def _causal_matrix(
    Y: np.ndarray,
    codes: np.ndarray,
    n_groups: np.ndarray,
    pairs: np.ndarray,
    method: str,
    combination: str,
    config: PosteriorConfig,
) -> np.ndarray:
    ns, ng = Y.shape
    P = np.zeros((len(CAUSAL_TESTS), len(pairs), ng))
    targets = np.arange(ng)

    for i, (e, a) in enumerate(pairs):
        nv = int(n_groups[e])
        if nv < 2:
            logger.warning(f"eQTL {e} of gene {a} is monomorphic; probabilities set to 0")
            continue
        _check_groups(ns, nv)

        llrs = real_llr_col(Y, Y[:, a], codes[:, e])
        mask = targets != a
        for k, (test, llr) in enumerate(zip(CAUSAL_TESTS, llrs)):
            P[k, i, mask] = posterior_probs(llr[mask], ns, nv, test, method, config)

    logger.debug(f"Causal posteriors for {len(pairs)} sources x {ng} genes")
    return combine_probs(P[0], P[1], P[2], P[3], combination)


def global_fdr(
    results: pd.DataFrame,
    FDR: float = 1.0,
    sorted: bool = True,
    prob_column: str = "Probability",
) -> pd.DataFrame:
    """
    Add Bayesian q-values and keep rows at or below an FDR threshold.

    Rows are ranked by decreasing probability; the q-value of the k-th row is
    the mean of ``1 - P`` over the first k rows, the expected fraction of
    false positives when reporting them.

    Args:
        results: Table with a probability column.
        FDR: q-value threshold.
        sorted: Keep rows ordered by decreasing probability. Otherwise the
            input order is restored.
        prob_column: Probability column.

    Returns:
        Table with a "qvalue" column.
    """
    if not 0 < FDR <= 1:
        raise ValueError(f"FDR must be in (0, 1], got {FDR}")

    ranked = results.sort_values(prob_column, ascending=False, kind="stable")
    errors = 1.0 - ranked[prob_column].to_numpy(dtype=float)
    qvalues = np.maximum.accumulate(np.cumsum(errors) / np.arange(1, len(ranked) + 1))
    ranked = ranked.assign(qvalue=np.clip(qvalues, 0.0, 1.0))

    if FDR < 1:
        ranked = ranked[ranked["qvalue"] <= FDR]

    if not sorted:
        ranked = ranked.sort_index()
    return ranked.reset_index(drop=True)


def _long_table(
    P: np.ndarray,
    source_names: Sequence[str],
    target_names: Sequence[str],
    self_targets: Sequence[int] | None,
    columns: Sequence[str] = ("Probability",),
) -> pd.DataFrame:
    """Flatten sources x targets matrices into Source/Target rows."""
    n_src, n_tgt = P.shape[-2:]
    source = np.repeat(np.asarray(source_names, dtype=object), n_tgt)
    target = np.tile(np.asarray(target_names, dtype=object), n_src)

    keep = np.ones(n_src * n_tgt, dtype=bool)
    if self_targets is not None:
        keep[np.arange(n_src) * n_tgt + np.asarray(self_targets, dtype=np.intp)] = False

    data = {"Source": source[keep], "Target": target[keep]}
    if P.ndim == 2:
        data[columns[0]] = P.ravel()[keep]
    else:
        for k, name in enumerate(columns):
            data[name] = P[k].ravel()[keep]
    return pd.DataFrame(data)


def _match_samples(X: pd.DataFrame, G: pd.DataFrame) -> tuple[pd.DataFrame, pd.DataFrame]:
    if X.index.equals(G.index):
        return X, G
    if len(X) == len(G) and (
        pd.api.types.is_integer_dtype(X.index) and pd.api.types.is_integer_dtype(G.index)
    ):
        # Positional rows, e.g. tables read without sample IDs
        return X, G.set_axis(X.index, axis=0)

    overlap = validate_sample_consistency(list(G.index), list(X.index))
    common = [s for s in X.index if s in overlap["common"]]
    logger.info(f"Using {len(common)} samples shared by expression and genotypes")
    return X.loc[common], G.loc[common]


def _resolve_sources(
    names: Sequence[str],
    cols: Sequence[int] | None,
    colnames: Sequence[str] | None,
) -> list[int] | None:
    if cols is not None and colnames is not None:
        raise ValueError("Give either cols or colnames, not both")
    if colnames is None:
        return None if cols is None else list(cols)

    position = {name: i for i, name in enumerate(names)}
    missing = [c for c in colnames if c not in position]
    if missing:
        raise ValidationError(f"Unknown source names: {missing[:5]}")
    return [position[c] for c in colnames]


def _resolve_pairs(
    pairs: pd.DataFrame,
    X: pd.DataFrame,
    G: pd.DataFrame,
    variant_column: str | int,
    gene_column: str | int,
) -> tuple[np.ndarray, list[str]]:
    """Map eQTL names to (variant index, gene index), one eQTL per gene."""
    variants = (pairs.iloc[:, variant_column] if isinstance(variant_column, int)
                else pairs[variant_column]).astype(str)
    genes = (pairs.iloc[:, gene_column] if isinstance(gene_column, int)
             else pairs[gene_column]).astype(str)

    variant_pos = {str(name): i for i, name in enumerate(G.columns)}
    gene_pos = {str(name): i for i, name in enumerate(X.columns)}

    usable = variants.isin(variant_pos.keys()) & genes.isin(gene_pos.keys())
    if not usable.all():
        logger.warning(f"Skipping {int((~usable).sum())} eQTL pairs with unknown names")

    seen: set[str] = set()
    index_pairs = []
    gene_names = []
    for variant, gene in zip(variants[usable], genes[usable]):
        if gene in seen:
            continue
        seen.add(gene)
        index_pairs.append((variant_pos[variant], gene_pos[gene]))
        gene_names.append(gene)

    if len(seen) < int(usable.sum()):
        logger.info("Genes with several eQTLs use the first one listed")
    if not index_pairs:
        raise ValidationError("No eQTL pair matches the genotype and expression tables")

    return np.asarray(index_pairs, dtype=np.intp), gene_names


def findr(
    X: pd.DataFrame,
    G: pd.DataFrame | None = None,
    pairs: pd.DataFrame | None = None,
    *,
    cols: Sequence[int] | None = None,
    colnames: Sequence[str] | None = None,
    FDR: float = 1.0,
    combination: str = "IV",
    method: str = "moments",
    sorted: bool = True,
    normalize: bool = True,
    variant_column: str | int = 0,
    gene_column: str | int = 1,
    config: PosteriorConfig | None = None,
) -> pd.DataFrame:
    """
    Run a Findr analysis on DataFrames.

    Args:
        X: Expression, samples x genes.
        G: Genotypes, samples x variants.
        pairs: eQTL table with a variant column and a gene column.
        cols: Positions of the sources (genes, variants or eQTL rows).
        colnames: Names of the sources: genes for coexpression, variants for
            association, genes A for causal inference.
        FDR: Report rows with q-value at or below this threshold.
        combination: "IV", "mediation", "orig" or "none" (causal only).
        method: "moments" or "kde".
        sorted: Order rows by decreasing probability.
        normalize: Whether to supernormalize X first.
        variant_column: Variant column of ``pairs``.
        gene_column: Gene column of ``pairs``.
        config: KDE and pi0 settings.

    Returns:
        Table with columns Source, Target, Probability and qvalue. With
        combination "none", columns Probability2 ... Probability5 and no
        q-values.
    """
    if G is None and pairs is not None:
        raise ValueError("Causal inference needs genotypes")

    X = X.copy()
    X.columns = X.columns.astype(str)

    if G is None:
        genes = list(X.columns)
        sources = _resolve_sources(genes, cols, colnames)
        src = _sources(sources, len(genes))
        P = findr_matrix(
            X.to_numpy(dtype=float), cols=src, method=method, normalize=normalize, config=config
        )
        results = _long_table(P, [genes[i] for i in src], genes, self_targets=src)

    else:
        G = G.copy()
        G.columns = G.columns.astype(str)
        X, G = _match_samples(X, G)

        if pairs is None:
            variants = list(G.columns)
            sources = _resolve_sources(variants, cols, colnames)
            src = _sources(sources, len(variants))
            P = findr_matrix(
                X.to_numpy(dtype=float), G, cols=src, method=method, normalize=normalize, config=config
            )
            results = _long_table(P, [variants[i] for i in src], list(X.columns), self_targets=None)

        else:
            index_pairs, pair_genes = _resolve_pairs(pairs, X, G, variant_column, gene_column)
            if colnames is not None:
                if cols is not None:
                    raise ValueError("Give either cols or colnames, not both")
                known = set(pair_genes)
                missing = [c for c in colnames if c not in known]
                if missing:
                    raise ValidationError(
                        f"Unknown source names or genes without eQTL: {missing[:5]}"
                    )
                wanted = set(colnames)
                keep = [i for i, gene in enumerate(pair_genes) if gene in wanted]
            else:
                keep = list(_sources(cols, len(index_pairs)))
            index_pairs = index_pairs[keep]
            pair_genes = [pair_genes[i] for i in keep]

            P = findr_matrix(
                X.to_numpy(dtype=float),
                G,
                index_pairs,
                method=method,
                combination=combination,
                normalize=normalize,
                config=config,
            )
            columns = PROBABILITY_COLUMNS if combination == "none" else ("Probability",)
            results = _long_table(
                P, pair_genes, list(X.columns), self_targets=index_pairs[:, 1], columns=columns
            )
            if combination == "none":
                if FDR < 1:
                    logger.warning("q-values need a combined probability; FDR is ignored")
                if sorted:
                    results = results.sort_values(
                        "Probability2", ascending=False, kind="stable"
                    ).reset_index(drop=True)
                return results

    results = global_fdr(results, FDR=FDR, sorted=sorted)
    logger.info(f"Reporting {len(results)} pairs at FDR {FDR}")
    return results
