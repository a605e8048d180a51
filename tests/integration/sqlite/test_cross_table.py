"""
Cross-table (Kreuz, Kreuz3) loading and linking tests.
"""
import pytest
from daokit import NoNullTypeError, ParameterList, Relation2, Relation3
from tests.fixtures.entities import Label, Other, Sample


@pytest.fixture
def linked(kreuz_dao):
    """Two samples and two others, linked a0-b0, a0-b1, a1-b1."""
    samples = [Sample(s='a0'), Sample(s='a1')]
    others = [Other(b=False), Other(b=True)]
    for sample in samples:
        kreuz_dao.dao_a.insert(sample)
    for other in others:
        kreuz_dao.dao_b.insert(other)
    kreuz_dao.create_relation(samples[0], others[0])
    kreuz_dao.create_relation(samples[0], others[1])
    kreuz_dao.create_relation(samples[1], others[1])
    return samples, others


@pytest.mark.sqlite
def test_symmetry(kreuz_dao):
    a = Sample(s='a')
    b = Other(b=True)
    kreuz_dao.dao_a.insert(a)
    kreuz_dao.dao_b.insert(b)

    kreuz_dao.create_relation(a, b)
    assert kreuz_dao.load_a_from_b(b) == [a]
    assert kreuz_dao.load_b_from_a(a) == [b]

    kreuz_dao.delete_relation(a, b)
    assert kreuz_dao.load_a_from_b(b) == []
    assert kreuz_dao.load_b_from_a(a) == []


@pytest.mark.sqlite
def test_load_from_side(kreuz_dao, linked):
    samples, others = linked
    assert kreuz_dao.load_a_from_b(others[1]) == samples
    assert kreuz_dao.load_b_from_a(samples[0]) == others
    assert kreuz_dao.load_b_from_a(samples[1]) == [others[1]]


@pytest.mark.sqlite
def test_loaded_objects_reused(kreuz_dao, linked):
    samples, others = linked
    result = kreuz_dao.load_relations_from_a(samples[0])
    assert result == [Relation2(samples[0], others[0]), Relation2(samples[0], others[1])]
    assert all(relation.a is samples[0] for relation in result)
    assert all(relation.b is not others[0] for relation in result)


@pytest.mark.sqlite
def test_load_relations(kreuz_dao, linked):
    samples, others = linked
    assert len(kreuz_dao.load_all_relations()) == 3
    assert kreuz_dao.load_relations_from_b(others[0]) == [Relation2(samples[0], others[0])]
    result = kreuz_dao.load_relations_from_where(where='Test2=?', params=ParameterList(others[1]),
                                                 order='Test')
    assert [relation.a for relation in result] == samples


@pytest.mark.sqlite
def test_counts(kreuz_dao, linked):
    samples, others = linked
    assert kreuz_dao.load_all_count() == 3
    assert kreuz_dao.load_all_count_from_a(samples[0]) == 2
    assert kreuz_dao.load_all_count_from_b(others[0]) == 1
    assert kreuz_dao.load_count_from_col(None, 'Test2', others[1]) == 2
    assert kreuz_dao.load_count_from_where(where='Test=? AND Test2=?',
                                           params=ParameterList(samples[1], others[0])) == 0


@pytest.mark.sqlite
def test_delete_one_link_only(kreuz_dao, linked):
    samples, others = linked
    kreuz_dao.delete_relation(samples[0], others[1])
    assert kreuz_dao.load_a_from_b(others[1]) == [samples[1]]
    assert kreuz_dao.load_b_from_a(samples[0]) == [others[0]]


@pytest.mark.sqlite
def test_wrong_arity(kreuz_dao):
    with pytest.raises(ValueError, match='links 2 objects, got 1'):
        kreuz_dao.create_relation(Sample())


@pytest.mark.sqlite
def test_unsaved_member_needs_type(kreuz_dao):
    a = Sample(s='a')
    kreuz_dao.dao_a.insert(a)
    with pytest.raises(NoNullTypeError):
        kreuz_dao.create_relation(a, Other())


@pytest.mark.sqlite
class TestTernary:
    """Kreuz3 links a sample, an other and an optional label."""

    @pytest.fixture(autouse=True)
    def entities(self, triple_dao):
        a = [Sample(s='a0'), Sample(s='a1')]
        b = [Other(b=False), Other(b=True)]
        c = [Label(name='c0'), Label(name='c1')]
        for entity in a:
            triple_dao.dao_a.insert(entity)
        for entity in b:
            triple_dao.dao_b.insert(entity)
        for entity in c:
            triple_dao.dao_c.insert(entity)
        triple_dao.create_relation(a[0], b[0], c[0])
        triple_dao.create_relation(a[0], b[1], c[1])
        triple_dao.create_relation(a[1], b[1], c[0])
        triple_dao.create_relation(a[1], b[0], None)
        return a, b, c

    def test_load_single_side(self, triple_dao, entities):
        a, b, c = entities
        assert triple_dao.load_a_from_c(c[0]) == a
        assert triple_dao.load_b_from_c(c[1]) == [b[1]]
        assert triple_dao.load_c_from_a(a[0]) == c
        assert triple_dao.load_c_from_b(b[0]) == [c[0]]
        assert triple_dao.load_a_from_b(b[0]) == a

    def test_load_from_two_sides(self, triple_dao, entities):
        a, b, c = entities
        assert triple_dao.load_a_from_b_and_c(b[1], c[0]) == [a[1]]
        assert triple_dao.load_b_from_a_and_c(a[0], c[1]) == [b[1]]
        assert triple_dao.load_c_from_a_and_b(a[0], b[0]) == [c[0]]
        assert triple_dao.load_c_from_a_and_b(a[1], b[0]) == []

    def test_counts(self, triple_dao, entities):
        a, b, c = entities
        assert triple_dao.load_all_count() == 4
        assert triple_dao.load_all_count_from_c(c[0]) == 2
        assert triple_dao.load_all_count_from_a_and_b(a[1], b[0]) == 1
        assert triple_dao.load_all_count_from_a_and_c(a[0], c[1]) == 1
        assert triple_dao.load_all_count_from_b_and_c(b[0], c[1]) == 0

    def test_relations_with_null_member(self, triple_dao, entities):
        a, b, c = entities
        relations = triple_dao.load_relations_from_a(a[1])
        assert Relation3(a[1], b[0], None) in relations
        assert Relation3(a[1], b[1], c[0]) in relations
        assert triple_dao.load_relations_from_c(c[1]) == [Relation3(a[0], b[1], c[1])]

    def test_delete_relation_with_null_member(self, triple_dao, entities):
        a, b, c = entities
        triple_dao.delete_relation(a[1], b[0], None)
        assert triple_dao.load_all_count() == 3
        assert Relation3(a[1], b[0], None) not in triple_dao.load_all_relations()
