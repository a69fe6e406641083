"""
Tests for FallbackKeyAllocator and ResponseContext: ext keys, lookup
building, and degradation without a registry.
"""

from trackline.core.fallback import FORMER_USER, UNKNOWN_USER, FallbackKeyAllocator, is_ext_key
from trackline.core.kinds import EntityKind
from trackline.core.references import ReferencedEntities
from trackline.core.response_context import ResponseContext

USER = EntityKind.USER
STATE = EntityKind.STATE
PROJECT = EntityKind.PROJECT


def referenced(*pairs) -> ReferencedEntities:
    refs = ReferencedEntities()
    for kind, uuid, *name in pairs:
        refs.add(kind, uuid, name[0] if name else None)
    return refs


class TestFallbackKeyAllocator:
    """ext keys are unique per response and never nameless."""

    def test_first_seen_order(self):
        allocator = FallbackKeyAllocator()
        assert allocator.allocate(USER, "x") == "ext0"
        assert allocator.allocate(USER, "y") == "ext1"
        assert allocator.allocate(USER, "x") == "ext0"

    def test_distinct_across_kinds(self):
        allocator = FallbackKeyAllocator()
        assert allocator.allocate(USER, "x") == "ext0"
        assert allocator.allocate(STATE, "y") == "ext1"
        assert allocator.allocate(PROJECT, "z") == "ext2"
        assert allocator.allocate(USER, "x") == "ext0"
        assert [entry.key for entry in allocator.entries(STATE)] == ["ext1"]
        assert len(allocator) == 3

    def test_names_never_empty(self):
        allocator = FallbackKeyAllocator(inline_names={USER: {"x": "Xavier"}})
        allocator.allocate(USER, "x")
        allocator.allocate(USER, "y")
        allocator.allocate(USER, "z", placeholder=FORMER_USER)
        names = [entry.name for entry in allocator.entries(USER)]
        assert names == ["Xavier", UNKNOWN_USER, FORMER_USER]

    def test_new_allocator_restarts(self):
        FallbackKeyAllocator().allocate(USER, "x")
        assert FallbackKeyAllocator().allocate(USER, "y") == "ext0"

    def test_is_ext_key(self):
        assert is_ext_key("ext12")
        assert not is_ext_key("u0")
        assert not is_ext_key("extra")


class TestKeyFor:
    """Registry key, else ext key, else inline name."""

    def test_registry_key(self, registry, ids):
        ctx = ResponseContext(registry)
        assert ctx.key_for(USER, ids.bob) == "u0"

    def test_unknown_gets_ext_key(self, registry, ids):
        ctx = ResponseContext(registry, referenced((USER, ids.guest, "Guest")))
        assert ctx.key_for(USER, ids.guest) == "ext0"
        assert ctx.fallback.entries(USER)[0].name == "Guest"

    def test_inactive_user_named_from_metadata(self, registry, ids):
        ctx = ResponseContext(registry)
        assert ctx.key_for(USER, ids.dave) == "ext0"
        assert ctx.fallback.entries(USER)[0].name == "Dave Departed"

    def test_ext_keys_unique(self, registry):
        ctx = ResponseContext(registry)
        keys = [ctx.key_for(USER, f"outsider-{n}") for n in range(5)]
        assert len(set(keys)) == 5
        assert all(entry.name for entry in ctx.fallback.entries(USER))

    def test_empty_uuid(self, registry):
        assert ResponseContext(registry).key_for(USER, None) is None

    def test_ref_accepts_nested(self, registry, ids):
        ctx = ResponseContext(registry)
        assert ctx.ref(USER, {"id": ids.alice, "name": "Alice"}) == "u1"
        assert ctx.ref(USER, {"id": "outsider", "name": "Olive"}) == "ext0"
        assert ctx.fallback.entries(USER)[0].name == "Olive"
        assert ctx.ref(USER, None) is None


class TestDegradation:
    """No registry: inline names, no lookups, no exceptions."""

    def test_inline_name_or_uuid(self, ids):
        ctx = ResponseContext(None, referenced((USER, ids.alice, "Alice Smith")))
        assert ctx.key_for(USER, ids.alice) == "Alice Smith"
        assert ctx.key_for(USER, ids.bob) == ids.bob

    def test_lookups_omitted(self, ids):
        ctx = ResponseContext(None, referenced((USER, ids.alice)))
        assert ctx.user_lookup() is None
        assert ctx.state_lookup() is None
        assert ctx.project_lookup() is None
        assert [section.schema.name for section in ctx.lookups()] == ["_labels"]


class TestLookups:
    """Only referenced entities, registry keys first, then ext keys."""

    def test_user_lookup_minimal_and_ordered(self, registry, ids):
        refs = referenced((USER, ids.carol), (USER, "outsider", "Olive"), (USER, ids.bob))
        section = ResponseContext(registry, refs).user_lookup()
        assert [row["key"] for row in section.items] == ["u0", "u2", "ext0"]
        assert section.items[0]["role"] == "Tech Lead"
        assert section.items[2]["name"] == "Olive"

    def test_rows_carry_every_field(self, registry, ids):
        refs = referenced((USER, "outsider"))
        section = ResponseContext(registry, refs).user_lookup()
        assert set(section.items[0]) == set(section.schema.fields)

    def test_state_lookup_namespaces(self, registry, ids):
        refs = referenced((STATE, ids.des_todo), (STATE, ids.done), (STATE, ids.todo))
        section = ResponseContext(registry, refs).state_lookup()
        assert [row["key"] for row in section.items] == ["s0", "s1", "des:s0"]
        assert section.items[2]["name"] == "Todo"

    def test_project_lookup(self, registry, ids):
        section = ResponseContext(registry, referenced((PROJECT, ids.api))).project_lookup()
        row = section.items[0]
        assert row["key"] == "pr1"
        assert row["progress"] == 0.46
        assert row["lead"] == "u1"
        assert row["priority"] == 2

    def test_inactive_lead_shows_deactivated(self, registry, ids):
        section = ResponseContext(registry, referenced((PROJECT, ids.website))).project_lookup()
        assert section.items[0]["lead"] == "(deactivated)"

    def test_unlisted_lead_shows_departed(self, registry, ids):
        registry.get_metadata(PROJECT, ids.website).lead_id = "gone-user"
        section = ResponseContext(registry, referenced((PROJECT, ids.website))).project_lookup()
        assert section.items[0]["lead"] == "(departed)"

    def test_lead_placeholder(self, registry, ids):
        ctx = ResponseContext(registry)
        assert ctx.lead_placeholder(ids.dave) == "Dave Departed (deactivated)"
        assert ctx.lead_placeholder("gone-user") == "Former User (departed)"
        assert ResponseContext(None).lead_placeholder("gone-user") == FORMER_USER

    def test_project_leads_appear_in_users(self, registry, ids):
        ctx = ResponseContext(registry, referenced((PROJECT, ids.api)))
        users = ctx.user_lookup()
        assert [row["key"] for row in users.items] == ["u1"]

    def test_empty_lookup_has_no_rows(self, registry):
        section = ResponseContext(registry).user_lookup()
        assert section.items == []

    def test_labels_sorted(self, registry):
        refs = ReferencedEntities()
        refs.labels.update({"Feature": "#0f0", "Bug": "#f00"})
        section = ResponseContext(registry, refs).label_lookup()
        assert section.items == [{"name": "Bug", "color": "#f00"}, {"name": "Feature", "color": "#0f0"}]
