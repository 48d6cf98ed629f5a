import dataclasses
import unittest

from tiledmodel import (
    BoolProperty,
    Color,
    ColorProperty,
    FileProperty,
    FloatProperty,
    GroupLayer,
    ImageLayer,
    IntProperty,
    MapDocument,
    ObjectGroup,
    Orientation,
    PROPERTY_TYPES,
    RenderOrder,
    StaggerAxis,
    StaggerIndex,
    StringProperty,
    TileLayer,
    Tileset,
)


def make_map(**kwargs):
    args = dict(
        orientation=Orientation.ORTHOGONAL,
        renderorder=RenderOrder.RIGHT_DOWN,
        width=10,
        height=8,
        tilewidth=16,
        tileheight=16,
        hexsidelength=-1,
        staggeraxis=None,
        staggerindex=None,
        background_color=None,
        tilesets=[],
        layers=[],
    )
    args.update(kwargs)
    return MapDocument(**args)


def make_tree():
    """ root(group) -> [a(tile), inner(group) -> [b(objects)]], c(image) """
    root = GroupLayer(id=1, name="root")
    a = TileLayer(id=2, name="a", parent=root)
    inner = GroupLayer(id=3, name="inner", parent=root)
    b = ObjectGroup(id=4, name="b", parent=inner)
    c = ImageLayer(id=5, name="c")
    return [root, a, inner, b, c]


class TestOrientationFields(unittest.TestCase):
    def test_hexagonal_map_keeps_stagger_fields(self):
        m = make_map(
            orientation=Orientation.HEXAGONAL,
            hexsidelength=8,
            staggeraxis=StaggerAxis.Y,
            staggerindex=StaggerIndex.ODD,
        )
        self.assertEqual(m.hexsidelength, 8)
        self.assertIs(m.staggeraxis, StaggerAxis.Y)
        self.assertIs(m.staggerindex, StaggerIndex.ODD)
        self.assertEqual(len(m.get_layers()), 0)
        self.assertEqual(len(m.get_tilesets()), 0)
        self.assertIsNone(m.get_property("missing"))
        self.assertTrue(m.is_staggered)

    def test_orthogonal_hexsidelength_sentinel_passes_through(self):
        m = make_map(orientation=Orientation.ORTHOGONAL, hexsidelength=-1)
        self.assertEqual(m.hexsidelength, -1)
        self.assertIsNone(m.staggeraxis)
        self.assertIsNone(m.staggerindex)
        self.assertFalse(m.is_staggered)

    def test_staggered_map_without_hex_side(self):
        m = make_map(
            orientation=Orientation.STAGGERED,
            staggeraxis=StaggerAxis.X,
            staggerindex=StaggerIndex.EVEN,
        )
        self.assertEqual(m.hexsidelength, -1)
        self.assertIs(m.staggeraxis, StaggerAxis.X)
        self.assertTrue(m.is_staggered)

    def test_isometric_is_not_staggered(self):
        m = make_map(orientation=Orientation.ISOMETRIC)
        self.assertFalse(m.is_staggered)

    def test_enum_values_are_tmx_strings(self):
        self.assertIs(Orientation("hexagonal"), Orientation.HEXAGONAL)
        self.assertIs(RenderOrder("left-up"), RenderOrder.LEFT_UP)
        self.assertIs(StaggerAxis("x"), StaggerAxis.X)
        self.assertIs(StaggerIndex("even"), StaggerIndex.EVEN)

    def test_infinite_flag_defaults_false(self):
        self.assertFalse(make_map().infinite)
        self.assertTrue(make_map(infinite=True).infinite)

    def test_background_color_absent_means_unspecified(self):
        self.assertIsNone(make_map().background_color)
        color = Color(1, 2, 3, 4)
        self.assertEqual(make_map(background_color=color).background_color, color)

    def test_repr_without_filename(self):
        self.assertEqual(repr(make_map()), "<MapDocument: orthogonal 10x8>")

    def test_repr_with_filename(self):
        self.assertEqual(repr(make_map(filename="a.tmx")), '<MapDocument: "a.tmx">')


class TestImmutability(unittest.TestCase):
    def test_attributes_cannot_be_set(self):
        m = make_map()
        with self.assertRaises(dataclasses.FrozenInstanceError):
            m.width = 3

    def test_properties_default_to_empty_mapping(self):
        m = make_map()
        self.assertIsNotNone(m.get_properties())
        self.assertEqual(len(m.get_properties()), 0)
        m = make_map(properties=None)
        self.assertEqual(dict(m.get_properties()), {})

    def test_properties_view_is_read_only(self):
        m = make_map(properties={"a": IntProperty(1)})
        with self.assertRaises(TypeError):
            m.get_properties()["b"] = IntProperty(2)

    def test_properties_are_copied(self):
        source = {"a": IntProperty(1)}
        m = make_map(properties=source)
        source["b"] = IntProperty(2)
        self.assertIsNone(m.get_property("b"))

    def test_sequences_are_copied_into_tuples(self):
        tilesets = [Tileset(1, "one", 16, 16)]
        layers = make_tree()
        m = make_map(tilesets=tilesets, layers=layers)
        tilesets.append(Tileset(10, "two", 16, 16))
        layers.pop()
        self.assertIsInstance(m.get_tilesets(), tuple)
        self.assertIsInstance(m.get_layers(), tuple)
        self.assertEqual(len(m.get_tilesets()), 1)
        self.assertEqual(len(m.get_layers()), 5)

    def test_layer_properties_are_read_only(self):
        layer = TileLayer(id=1, name="a", properties={"x": IntProperty(1)})
        with self.assertRaises(TypeError):
            layer.properties["y"] = IntProperty(2)
        with self.assertRaises(dataclasses.FrozenInstanceError):
            layer.name = "b"


class TestLayerHierarchy(unittest.TestCase):
    def setUp(self):
        self.layers = make_tree()
        self.m = make_map(layers=self.layers)

    def test_order_is_preserved(self):
        self.assertEqual(list(self.m.get_layers()), self.layers)
        self.assertEqual(list(self.m), self.layers)

    def test_parents_precede_children(self):
        layers = self.m.get_layers()
        for i, layer in enumerate(layers):
            if layer.parent is not None:
                self.assertLess(layers.index(layer.parent), i)

    def test_top_level_layers(self):
        root, a, inner, b, c = self.layers
        self.assertEqual(self.m.top_level_layers, (root, c))

    def test_get_children(self):
        root, a, inner, b, c = self.layers
        self.assertEqual(self.m.get_children(root), (a, inner))
        self.assertEqual(self.m.get_children(inner), (b,))
        self.assertEqual(self.m.get_children(a), ())

    def test_get_children_matches_parent_scan(self):
        for group in self.layers:
            expected = tuple(l for l in self.layers if l.parent is group)
            self.assertEqual(self.m.get_children(group), expected)

    def test_iter_descendants(self):
        root, a, inner, b, c = self.layers
        self.assertEqual(list(self.m.iter_descendants(root)), [a, inner, b])
        self.assertEqual(list(self.m.iter_descendants(c)), [])

    def test_rebuild_tree_in_one_pass(self):
        tree = {None: []}
        for layer in self.m.get_layers():
            tree[layer] = []
            tree[layer.parent].append(layer)
        root, a, inner, b, c = self.layers
        self.assertEqual(tree[None], [root, c])
        self.assertEqual(tree[inner], [b])

    def test_get_layer_by_name(self):
        self.assertIs(self.m.get_layer_by_name("inner"), self.layers[2])
        with self.assertRaises(ValueError):
            self.m.get_layer_by_name("INNER")


class TestProperties(unittest.TestCase):
    def setUp(self):
        self.props = {
            "s": StringProperty(""),
            "i": IntProperty(4),
            "f": FloatProperty(0.5),
            "b": BoolProperty(False),
            "c": ColorProperty(Color(255, 0, 0)),
            "p": FileProperty("a/b.png"),
        }
        self.m = make_map(properties=self.props)

    def test_there_are_six_kinds(self):
        self.assertEqual(
            set(PROPERTY_TYPES), {"string", "int", "float", "bool", "color", "file"}
        )

    def test_each_value_is_exactly_one_kind(self):
        kinds = tuple(PROPERTY_TYPES.values())
        for name in self.props:
            value = self.m.get_property(name)
            matches = [k for k in kinds if isinstance(value, k)]
            self.assertEqual(len(matches), 1)

    def test_empty_string_is_present(self):
        self.assertEqual(self.m.get_property("s"), StringProperty(""))

    def test_falsy_values_are_not_absent(self):
        self.assertEqual(self.m.get_property("b").value, False)

    def test_lookup_is_case_sensitive(self):
        self.assertIsNone(self.m.get_property("S"))
        self.assertIsNone(self.m.get_property("missing"))

    def test_variants_compare_by_kind(self):
        self.assertNotEqual(IntProperty(1), FloatProperty(1.0))
        self.assertNotEqual(StringProperty("a"), FileProperty("a"))
        self.assertEqual(IntProperty(1), IntProperty(1))

    def test_type_name(self):
        self.assertEqual(self.m.get_property("c").type_name, "color")
        self.assertEqual(FileProperty.type_name, "file")


class TestColor(unittest.TestCase):
    def test_argb(self):
        self.assertEqual(Color.from_hex("#80ff0010"), Color(255, 0, 16, 128))

    def test_rgb_is_opaque(self):
        self.assertEqual(Color.from_hex("#336699"), Color(0x33, 0x66, 0x99, 255))

    def test_hash_is_optional(self):
        self.assertEqual(Color.from_hex("ff00ff"), Color(255, 0, 255))

    def test_to_hex(self):
        self.assertEqual(Color(255, 0, 16, 128).to_hex(), "#80ff0010")

    def test_as_tuple(self):
        self.assertEqual(Color(1, 2, 3).as_tuple(), (1, 2, 3, 255))

    def test_bad_colors_raise(self):
        for text in ("", "#12345", "#gg0000", "#1234567890", "#-1ff00ff", "#ff 0ff00"):
            with self.assertRaises(ValueError):
                Color.from_hex(text)


class TestTilesets(unittest.TestCase):
    def setUp(self):
        self.first = Tileset(firstgid=1, name="first", tilewidth=16, tileheight=16, tilecount=10)
        self.second = Tileset(firstgid=11, name="second", tilewidth=16, tileheight=16, tilecount=5)
        self.m = make_map(tilesets=[self.first, self.second])

    def test_order_is_preserved(self):
        self.assertEqual(self.m.get_tilesets(), (self.first, self.second))

    def test_lastgid(self):
        self.assertEqual(self.first.lastgid, 10)
        self.assertEqual(self.second.lastgid, 15)

    def test_get_tileset_from_gid(self):
        self.assertIs(self.m.get_tileset_from_gid(1), self.first)
        self.assertIs(self.m.get_tileset_from_gid(10), self.first)
        self.assertIs(self.m.get_tileset_from_gid(11), self.second)

    def test_get_tileset_from_gid_ignores_flip_flags(self):
        self.assertIs(self.m.get_tileset_from_gid(11 | 1 << 31), self.second)

    def test_get_tileset_from_gid_empty_tile(self):
        with self.assertRaises(ValueError):
            self.m.get_tileset_from_gid(0)
