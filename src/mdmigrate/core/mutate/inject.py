"""Import, constant, component, route and backend-registration injection"""

from mdmigrate.core.mutate.anchors import (
    Insertion,
    after_last_line,
    before_definition,
    before_last_closing_brace,
    before_line,
    end_of_file,
    import_block_end,
    insert_with_fallback,
    inside_element,
    top_of_file,
)


APP_DEFINITION = 'app'
ENTITY_PAGE_DEFINITION = 'EntityPage'
BACKEND_START = 'backend.start()'


def add_import(content: str, statement: str, label: str = 'target') -> Insertion:
    """Add one import statement after the import block, or at the top of the file."""
    return insert_with_fallback(content, statement, [import_block_end, top_of_file], label)


def add_imports(content: str, statements: list[str], label: str = 'target') -> tuple[str, list[Insertion]]:
    """Apply add_import for each statement in order; returns final content and per-statement results."""
    results = []
    for statement in statements:
        result = add_import(content, statement, label)
        content = result.content
        results.append(result)
    return content, results


def add_constant(content: str, fragment: str, before: str = ENTITY_PAGE_DEFINITION, label: str = 'target') -> Insertion:
    """Add a top-level constant ahead of the named definition."""
    chain = [before_definition(before), import_block_end, end_of_file]
    return insert_with_fallback(content, fragment, chain, label, pad=True)


def add_component(content: str, fragment: str, within: str = 'overviewContent', label: str = 'target') -> Insertion:
    """Add a JSX component inside the Grid container of the named layout constant."""
    chain = [
        inside_element('Grid', opener='container', within=within),
        inside_element('Grid', opener='container'),
        before_last_closing_brace,
        end_of_file,
    ]
    return insert_with_fallback(content, fragment, chain, label)


def add_route(content: str, fragment: str, label: str = 'target') -> Insertion:
    """Add a <Route> element to the app's route table."""
    chain = [
        inside_element('FlatRoutes'),
        after_last_line('<Route'),
        before_last_closing_brace,
        end_of_file,
    ]
    return insert_with_fallback(content, fragment, chain, label)


def add_entity_route(content: str, fragment: str, layout: str = 'serviceEntityPage', label: str = 'target') -> Insertion:
    """Add an <EntityLayout.Route> to the named entity layout, else the first layout found."""
    chain = [
        inside_element('EntityLayout', within=layout),
        inside_element('EntityLayout'),
        before_last_closing_brace,
        end_of_file,
    ]
    return insert_with_fallback(content, fragment, chain, label)


def add_app_constant(content: str, fragment: str, label: str = 'target') -> Insertion:
    """Add a constant ahead of `const app = createApp(...)`."""
    chain = [before_definition(APP_DEFINITION), import_block_end, end_of_file]
    return insert_with_fallback(content, fragment, chain, label, pad=True)


def add_backend_registration(content: str, fragment: str, label: str = 'target') -> Insertion:
    """Add a backend.add(...) registration before backend.start(), else at the end."""
    chain = [before_line(BACKEND_START), end_of_file]
    return insert_with_fallback(content, fragment, chain, label, pad=True)
