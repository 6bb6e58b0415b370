"""
Company hierarchy
Groups company records by parent id and renders them as a box-drawing tree
"""
import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Set

from .errors import HierarchyCycleError
from .models import Company

logger = logging.getLogger(__name__)

# Parent id of top-level companies as returned by the CMS
ROOT_COMPANY_ID = 2

BRANCH = '├── '
CORNER = '└── '
PIPE = '│   '
SPACE = '    '


def build_forest(companies: Iterable[Company]) -> Dict[int, List[Company]]:
    """Group companies by parent id, keeping input order inside each group."""
    forest: Dict[int, List[Company]] = defaultdict(list)
    for company in companies:
        forest[company.parent_id].append(company)
    return dict(forest)


def render_tree(forest: Dict[int, List[Company]], root_id: int = ROOT_COMPANY_ID,
                prefix: str = '') -> str:
    """
    Render the subtree under ``root_id`` depth-first, pre-order.

    Example for A under the root and B under A::

        └── A
            └── B

    Raises:
        HierarchyCycleError: a company is its own ancestor
    """
    lines: List[str] = []

    # Each frame: (children, next index, prefix, ids on the path to this level)
    path: List[int] = [root_id]
    on_path: Set[int] = {root_id}
    stack = [(forest.get(root_id, []), 0, prefix)]

    while stack:
        children, index, current_prefix = stack[-1]
        if index >= len(children):
            stack.pop()
            on_path.discard(path.pop())
            continue

        stack[-1] = (children, index + 1, current_prefix)
        company = children[index]
        is_last = index == len(children) - 1

        lines.append(f"{current_prefix}{CORNER if is_last else BRANCH}{company.name}\n")

        grandchildren = forest.get(company.id, [])
        if not grandchildren:
            continue

        if company.id in on_path:
            cycle = path[path.index(company.id):] + [company.id]
            logger.error(f"Cycle in company hierarchy: {cycle}")
            raise HierarchyCycleError(cycle)

        path.append(company.id)
        on_path.add(company.id)
        stack.append((grandchildren, 0, current_prefix + (SPACE if is_last else PIPE)))

    return ''.join(lines)


def render_company_tree(companies: Iterable[Company], root_id: int = ROOT_COMPANY_ID) -> str:
    """build_forest + render_tree"""
    return render_tree(build_forest(companies), root_id)
