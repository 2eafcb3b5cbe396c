from __future__ import annotations
import html
import re
from typing import Optional

xml_pattern = re.compile(r'(<!\[CDATA\[.*?\]\]>|<!--.*?-->|<[^>]*?>)', flags=re.DOTALL)
first_word_pattern = re.compile(r'^\s*[/!?]*\s*([\w:.-]+)')
attribute_pattern = re.compile(r'([^\s=/]+)\s*=\s*("[^"]*"|\'[^\']*\')', flags=re.DOTALL)

def is_markup_noise(svg_value: str) -> bool:
    # comments, CDATA, <?xml ...?> and <!DOCTYPE ...> never become nodes
    return svg_value.startswith('<!') or svg_value.startswith('<?')

def is_self_terminating(svg_value: str) -> bool:
    return svg_value.rstrip().endswith('/>')

def is_terminator(svg_value: str) -> bool:
    return svg_value.strip().startswith('</')

def get_tag(svg_value: str) -> str:
    content = svg_value.strip()
    if content.startswith('</'):
        content = content[2:]
    elif content.startswith('<'):
        content = content[1:]
    if content.endswith('>'):
        content = content[:-1]
    if content.endswith('/'):
        content = content[:-1]

    match = first_word_pattern.search(content)
    if not match:
        return ""
    tag = match.group(1)
    # svg:rect and rect are the same element
    if ':' in tag:
        tag = tag.split(':', 1)[1]
    return tag

def parse_style(style: str) -> dict:
    declarations = {}
    for item in style.split(';'):
        if ':' not in item:
            continue
        key, value = item.split(':', 1)
        key = key.strip()
        value = value.strip()
        if key and value:
            declarations[key] = value
    return declarations

def parse_attributes(element: str) -> dict:
    attributes = {}

    content = element.strip()
    if content.startswith('</'):
        return attributes
    if content.startswith('<'):
        content = content[1:]
    if content.endswith('>'):
        content = content[:-1]
    if content.endswith('/'):
        content = content[:-1].rstrip()

    parts = content.split(None, 1)
    if len(parts) < 2:
        return attributes

    for key, quoted in attribute_pattern.findall(parts[1]):
        attributes[key] = html.unescape(quoted[1:-1])

    # inline style wins over presentation attributes
    if 'style' in attributes:
        attributes.update(parse_style(attributes.pop('style')))

    return attributes

def tokenize(text: str) -> list[str]:
    entries = xml_pattern.findall(text)
    return [x for x in entries if not is_markup_noise(x)]

class Node:
    def __init__(self, element: str):
        self.element = element
        self.tag = get_tag(element)
        self.attributes = parse_attributes(element)
        self.children = []
        self.parent = None

    def add_node_child(self, new_node: 'Node'):
        new_node.parent = self
        self.children.append(new_node)
        return new_node

    def compare_tag(self, element: str) -> bool:
        return self.tag == get_tag(element)

    def get_attribute(self, attr_name: str, default: str = None) -> str:
        return self.attributes.get(attr_name, default)

    def iter(self):
        yield self
        for child in self.children:
            yield from child.iter()

def build_tree(entries: list[str]) -> Optional[Node]:
    """Nest the flat tag stream under the first <svg> element.

    Anything before the root is skipped. Unbalanced closing tags are
    tolerated; a closing tag that matches no open element is ignored.
    """
    iterator = iter(entries)
    root = None

    for svg_element in iterator:
        if is_terminator(svg_element):
            continue
        if get_tag(svg_element) == "svg":
            root = Node(svg_element)
            break

    if root is None:
        return None
    if is_self_terminating(root.element):
        return root

    r = root
    for svg_element in iterator:
        if r is None:
            break

        if is_terminator(svg_element):
            current = r
            while current is not None and not current.compare_tag(svg_element):
                current = current.parent
            if current is not None:
                r = current.parent
            continue

        new_child = Node(svg_element)
        r.add_node_child(new_child)
        if not is_self_terminating(svg_element):
            r = new_child

    return root
