"""
Annotation and enrichment export for the TMT quantification pipeline.

Joins test results to protein names and descriptions, then writes the
foreground (up, down) and background identifier lists consumed by an
external GO enrichment tool.
"""

import copy
import os

import pandas as pd

from .utils import save_data

ANNOTATION_COLUMNS = ['identifier', 'name', 'description']

ID_LIST_FILES = {
    'up': 'foreground_up.txt',
    'down': 'foreground_down.txt',
    'background': 'background.txt',
}


def load_annotations(path):
    """
    Read a tab-separated identifier -> name/description table.

    The first three columns are taken as identifier, name and description
    whatever their headers; any further columns are ignored.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Annotation file not found: {path}")

    df = pd.read_csv(path, sep='\t', dtype=str, keep_default_na=False)

    if df.shape[1] < 3:
        raise ValueError(
            f"Annotation file {path} needs identifier, name and description columns, "
            f"found {df.shape[1]} columns"
        )

    df = df.iloc[:, :3].copy()
    df.columns = ANNOTATION_COLUMNS
    return df.drop_duplicates(subset='identifier', keep='first').reset_index(drop=True)


def annotate_results(results, annotations, id_col):
    """
    Inner-join test results with annotations on the protein identifier.

    Identifiers present on only one side are dropped. Identifiers are
    compared as text, so numeric protein ids match their annotations.

    Returns
    -------
    tuple
        (annotated DataFrame, number of result rows without annotation)
    """
    results = results.assign(**{id_col: results[id_col].astype(str)})
    annotations = annotations.assign(identifier=annotations['identifier'].astype(str))

    annotated = results.merge(
        annotations, how='inner', left_on=id_col, right_on='identifier'
    )
    if id_col != 'identifier':
        annotated = annotated.drop(columns='identifier')

    n_unmatched = int((~results[id_col].isin(annotations['identifier'])).sum())
    return annotated, n_unmatched


def partition_results(annotated, id_col):
    """
    Split identifiers into enrichment foreground and background sets.

    Returns
    -------
    dict
        'up': significant and relevant with positive difference,
        'down': significant and relevant with negative difference,
        'background': every tested identifier.
        Each value is a list of identifiers.
    """
    tested = annotated[annotated['test_error'] == '']
    hits = tested[tested['significant'] & tested['relevant_change']]

    return {
        'up': hits.loc[hits['difference'] > 0, id_col].tolist(),
        'down': hits.loc[hits['difference'] < 0, id_col].tolist(),
        'background': tested[id_col].tolist(),
    }


def write_id_lists(partitions, out_dir):
    """
    Write each partition as a newline-delimited identifier file.

    Returns
    -------
    dict
        Partition name -> written path.
    """
    os.makedirs(out_dir, exist_ok=True)

    paths = {}
    for name, filename in ID_LIST_FILES.items():
        path = os.path.join(out_dir, filename)
        with open(path, 'w') as f:
            for identifier in partitions.get(name, []):
                f.write(f"{identifier}\n")
        paths[name] = path

    return paths


def annotate_tmt(data, annotation_file=None):
    """
    Add protein names and descriptions to the statistical results.

    Parameters
    ----------
    data : dict
        Output from stat_tmt().
    annotation_file : str, optional
        Tab-separated identifier/name/description table. Defaults to
        data_paths.annotation_file in the config.

    Returns
    -------
    dict
        Updated data dictionary with 'annotated_results'.

    Example
    -------
    >>> data = stat_tmt(data)
    >>> data = annotate_tmt(data)
    """

    print("\n" + "="*80)
    print("PROTEIN ANNOTATION")
    print("="*80)

    config = data['config']
    results = data['stats_results']
    protein_col = config['data_columns']['protein_id']

    if annotation_file is None:
        annotation_file = config['data_paths']['annotation_file']

    print(f"\n[1/2] Loading annotations from {annotation_file}...")

    annotations = load_annotations(annotation_file)
    print(f"  > Loaded {len(annotations)} annotated identifiers")

    print(f"\n[2/2] Joining annotations on {protein_col}...")

    annotated, n_unmatched = annotate_results(results, annotations, protein_col)

    print(f"  > {len(annotated)} of {len(results)} proteins annotated")
    if n_unmatched > 0:
        print(f"    Dropped {n_unmatched} proteins without annotation")

    tables_dir = data['output_dirs']['tables']
    annotated.to_csv(os.path.join(tables_dir, 'annotated_results.csv'), index=False)
    print(f"  > Saved: annotated_results.csv")

    data_updated = copy.copy(data)
    data_updated['annotated_results'] = annotated

    output_path = os.path.join(config['data_paths']['output_dir'], 'data_after_annotate.pkl')
    save_data(data_updated, output_path)

    print("\n" + "="*80)
    print("ANNOTATION COMPLETE")
    print("="*80)
    print(f"\nNext step: export_tmt() to write GO enrichment lists")
    print("="*80 + "\n")

    return data_updated


def export_tmt(data):
    """
    Write foreground and background identifier lists for GO enrichment.

    Files are written to <output_dir>/enrichment/ and can be uploaded to
    a web-based enrichment tool (foreground against background).

    Parameters
    ----------
    data : dict
        Output from annotate_tmt().

    Returns
    -------
    dict
        Updated data dictionary with 'enrichment_sets' (identifier lists)
        and 'enrichment_files' (written paths).

    Example
    -------
    >>> data = annotate_tmt(data)
    >>> data = export_tmt(data)
    """

    print("\n" + "="*80)
    print("ENRICHMENT EXPORT")
    print("="*80)

    config = data['config']
    protein_col = config['data_columns']['protein_id']
    treatment = config['conditions']['treatment']

    partitions = partition_results(data['annotated_results'], protein_col)

    print(f"\n  Up in {treatment}: {len(partitions['up'])}")
    print(f"  Down in {treatment}: {len(partitions['down'])}")
    print(f"  Background: {len(partitions['background'])}")

    if not partitions['up'] and not partitions['down']:
        print(f"  Warning: no significant and relevant proteins to export")

    paths = write_id_lists(partitions, data['output_dirs']['enrichment'])
    for name, path in paths.items():
        print(f"  > Saved: {os.path.basename(path)}")

    data_updated = copy.copy(data)
    data_updated['enrichment_sets'] = partitions
    data_updated['enrichment_files'] = paths

    output_path = os.path.join(config['data_paths']['output_dir'], 'data_after_export.pkl')
    save_data(data_updated, output_path)

    print("\n" + "="*80)
    print("EXPORT COMPLETE")
    print("="*80)
    print(f"\nUpload the foreground lists with background.txt as the")
    print(f"reference set to a GO enrichment tool.")
    print("="*80 + "\n")

    return data_updated
