"""SMM code universe: union of the diagnosis, procedure and transfusion reference lists."""
import logging
from pathlib import Path
from typing import FrozenSet, Iterable, List, Union

from smm_charges.config.analysis_config import REFERENCE_DIR, REFERENCE_FILES

logger = logging.getLogger(__name__)


def load_code_list(path: Union[str, Path]) -> List[str]:
    """Read one newline-delimited code table.

    Args:
        path: Text file with one code per line

    Returns:
        Codes in file order. Blank lines and '#' comments are skipped;
        codes are otherwise kept verbatim (no case or punctuation changes).
    """
    codes = []
    with open(path, "r") as f:
        for line in f:
            code = line.strip()
            if not code or code.startswith("#"):
                continue
            codes.append(code)
    return codes


def build_code_universe(
    dx_codes: Iterable[str],
    pr_codes: Iterable[str],
    transfusion_codes: Iterable[str],
) -> FrozenSet[str]:
    """Union of the three SMM reference lists.

    Args:
        dx_codes: ICD-10-CM diagnosis codes
        pr_codes: ICD-10-PCS procedure codes
        transfusion_codes: ICD-10-PCS transfusion procedure codes

    Returns:
        Frozen set of codes compared by exact string identity
    """
    lists = {
        "diagnosis": list(dx_codes),
        "procedure": list(pr_codes),
        "transfusion": list(transfusion_codes),
    }
    for name, codes in lists.items():
        if not codes:
            logger.warning(f"SMM {name} code list is empty")

    universe = frozenset(code for codes in lists.values() for code in codes)
    if not universe:
        logger.warning("SMM code universe is empty: the SMM filter will retain no admissions")
    return universe


def load_code_universe(reference_dir: Union[str, Path] = REFERENCE_DIR) -> FrozenSet[str]:
    """Load the shipped reference lists and build the code universe."""
    reference_dir = Path(reference_dir)
    universe = build_code_universe(
        load_code_list(reference_dir / REFERENCE_FILES["diagnosis"]),
        load_code_list(reference_dir / REFERENCE_FILES["procedure"]),
        load_code_list(reference_dir / REFERENCE_FILES["transfusion"]),
    )
    logger.info(f"Loaded {len(universe)} SMM-defining codes from {reference_dir}")
    return universe
