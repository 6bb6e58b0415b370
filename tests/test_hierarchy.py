import pytest

from cms_client import Company, HierarchyCycleError, build_forest, render_company_tree, render_tree


def company(id, name, parent_id):
    return Company(id=id, nm=name, pId=parent_id)


def test_single_chain():
    tree = render_company_tree([company(1, 'A', 2), company(3, 'B', 1)])
    assert tree == '└── A\n    └── B\n'


def test_siblings_and_nesting():
    companies = [
        company(10, 'A', 2),
        company(20, 'B', 2),
        company(11, 'A1', 10),
        company(12, 'A2', 10),
        company(21, 'B1', 20),
    ]
    assert render_company_tree(companies) == (
        '├── A\n'
        '│   ├── A1\n'
        '│   └── A2\n'
        '└── B\n'
        '    └── B1\n'
    )


def test_unreachable_companies_are_not_rendered():
    companies = [company(10, 'A', 2), company(30, 'Orphan', 99)]
    assert render_company_tree(companies) == '└── A\n'


def test_empty_input():
    assert render_company_tree([]) == ''


def test_custom_root_and_prefix():
    forest = build_forest([company(5, 'X', 1), company(6, 'Y', 5)])
    assert render_tree(forest, root_id=1, prefix='> ') == '> └── X\n>     └── Y\n'


def test_build_forest_keeps_input_order():
    forest = build_forest([company(3, 'C', 2), company(1, 'A', 2), company(2, 'B', 2)])
    assert [c.name for c in forest[2]] == ['C', 'A', 'B']


def test_cycle_is_reported():
    companies = [company(3, 'A', 2), company(4, 'B', 3), company(3, 'A again', 4)]
    with pytest.raises(HierarchyCycleError) as exc_info:
        render_company_tree(companies)
    assert exc_info.value.cycle == [3, 4, 3]
    assert '3 -> 4 -> 3' in str(exc_info.value)


def test_root_reachable_from_itself():
    companies = [company(3, 'A', 2), company(2, 'Root', 3)]
    with pytest.raises(HierarchyCycleError) as exc_info:
        render_company_tree(companies)
    assert exc_info.value.cycle == [2, 3, 2]


def test_deep_chain_does_not_hit_recursion_limit():
    companies = [company(1000 + i, f'C{i}', 2 if i == 0 else 999 + i) for i in range(1500)]
    lines = render_company_tree(companies).splitlines()
    assert len(lines) == 1500
    assert lines[-1].endswith('└── C1499')
