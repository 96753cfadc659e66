"""Knowledge base article commands."""
from typing import Annotated

import typer
from rich.markup import escape

from track.cli import render
from track.cli.common import console, emit_json, get_state, handle_errors, success
from track.core.exceptions import InvalidInputError
from track.core.pagination import fetch_all_pages
from track.core.types import Article, CreateArticle, UpdateArticle


article_app = typer.Typer(name="article", help="Knowledge base articles.", no_args_is_help=True)

PAGE_SIZE = 100


@article_app.command("get")
def get_article(
    ctx: typer.Context,
    article_id: Annotated[str, typer.Argument(help="Article ID, e.g. KB-A-1.")],
) -> None:
    state = get_state(ctx)
    with handle_errors(state):
        article = state.knowledge_base.get_article(article_id)

    if state.json:
        emit_json(article)
    else:
        render.article_detail(article)


@article_app.command("list")
def list_articles(
    ctx: typer.Context,
    project: Annotated[str | None, typer.Option("--project", "-p", help="Only articles of this project.")] = None,
    limit: Annotated[int, typer.Option("--limit", "-l", min=1)] = 20,
    skip: Annotated[int, typer.Option("--skip", min=0)] = 0,
    all_pages: Annotated[bool, typer.Option("--all", help="Fetch every page.")] = False,
) -> None:
    """List articles, optionally within one project."""
    state = get_state(ctx)
    with handle_errors(state):
        kb = state.knowledge_base
        project_id = kb.resolve_project_id(project) if project else None
        if all_pages:
            articles = fetch_all_pages(
                lambda offset, size: kb.list_articles(project_id, size, offset),
                PAGE_SIZE,
                state.config.max_results,
            )
        else:
            articles = kb.list_articles(project_id, limit, skip)

    if state.json:
        emit_json(articles)
    else:
        render.article_table(articles)


@article_app.command("search")
def search_articles(
    ctx: typer.Context,
    query: Annotated[str, typer.Argument(help="Search text.")],
    limit: Annotated[int, typer.Option("--limit", "-l", min=1)] = 20,
    skip: Annotated[int, typer.Option("--skip", min=0)] = 0,
    all_pages: Annotated[bool, typer.Option("--all", help="Fetch every page.")] = False,
) -> None:
    state = get_state(ctx)
    with handle_errors(state):
        kb = state.knowledge_base
        if all_pages:
            articles = fetch_all_pages(
                lambda offset, size: kb.search_articles(query, size, offset),
                PAGE_SIZE,
                state.config.max_results,
            )
        else:
            articles = kb.search_articles(query, limit, skip)

    if state.json:
        emit_json(articles)
    else:
        render.article_table(articles)


@article_app.command("create")
def create_article(
    ctx: typer.Context,
    summary: Annotated[str, typer.Option("--summary", "-s", help="Article title.")],
    project: Annotated[str | None, typer.Option("--project", "-p", help="Project ID or short name.")] = None,
    content: Annotated[str | None, typer.Option("--content", "-c", help="Markdown body.")] = None,
    parent: Annotated[str | None, typer.Option("--parent", help="Parent article ID.")] = None,
    tags: Annotated[list[str] | None, typer.Option("--tag", "-t")] = None,
) -> None:
    state = get_state(ctx)
    with handle_errors(state):
        kb = state.knowledge_base
        project_id = kb.resolve_project_id(state.project_or_default(project))
        article = kb.create_article(
            CreateArticle(
                project_id=project_id,
                summary=summary,
                content=content,
                parent_id=parent,
                tags=tags or [],
            )
        )

    if state.json:
        emit_json(article)
    else:
        success(f"Created article {article.id_readable or article.id}")


@article_app.command("update")
def update_article(
    ctx: typer.Context,
    article_id: Annotated[str, typer.Argument(help="Article ID.")],
    summary: Annotated[str | None, typer.Option("--summary", "-s")] = None,
    content: Annotated[str | None, typer.Option("--content", "-c")] = None,
    tags: Annotated[list[str] | None, typer.Option("--tag", "-t", help="Replace tags.")] = None,
) -> None:
    state = get_state(ctx)
    with handle_errors(state):
        update = UpdateArticle(summary=summary, content=content, tags=tags)
        if not update.model_dump(exclude_none=True):
            raise InvalidInputError("update", "nothing to change")
        article = state.knowledge_base.update_article(article_id, update)

    if state.json:
        emit_json(article)
    else:
        success(f"Updated article {article.id_readable or article.id}")


@article_app.command("delete")
def delete_article(
    ctx: typer.Context,
    article_id: Annotated[str, typer.Argument(help="Article ID.")],
) -> None:
    state = get_state(ctx)
    with handle_errors(state):
        state.knowledge_base.delete_article(article_id)

    if state.json:
        emit_json({"deleted": article_id})
    else:
        success(f"Deleted article {article_id}")


def _print_tree(articles: list[Article], children: dict[str, list[Article]], depth: int) -> None:
    for article in articles:
        console.print(
            f"{'  ' * depth}[cyan]{escape(article.id_readable or article.id)}[/cyan] {escape(article.summary)}",
            highlight=False,
        )
        _print_tree(children.get(article.id, []), children, depth + 1)


@article_app.command("tree")
def article_tree(
    ctx: typer.Context,
    article_id: Annotated[str, typer.Argument(help="Root article ID.")],
) -> None:
    """Show an article and everything below it."""
    state = get_state(ctx)
    with handle_errors(state):
        kb = state.knowledge_base
        root = kb.get_article(article_id)
        children: dict[str, list[Article]] = {}
        pending = [root]
        while pending:
            current = pending.pop()
            if current is not root and not current.has_children:
                continue
            found = kb.get_child_articles(current.id_readable or current.id)
            children[current.id] = found
            pending.extend(found)

    if state.json:
        def nest(article: Article) -> dict:
            return {**article.model_dump(mode="json"), "children": [nest(c) for c in children.get(article.id, [])]}

        emit_json(nest(root))
    else:
        _print_tree([root], children, 0)


@article_app.command("move")
def move_article(
    ctx: typer.Context,
    article_id: Annotated[str, typer.Argument(help="Article ID.")],
    parent: Annotated[str | None, typer.Option("--parent", help="New parent; omit to move to the top level.")] = None,
) -> None:
    state = get_state(ctx)
    with handle_errors(state):
        article = state.knowledge_base.move_article(article_id, parent)

    if state.json:
        emit_json(article)
    else:
        success(f"Moved {article.id_readable or article.id} under {parent or 'the project root'}")


@article_app.command("attachments")
def list_attachments(
    ctx: typer.Context,
    article_id: Annotated[str, typer.Argument(help="Article ID.")],
) -> None:
    state = get_state(ctx)
    with handle_errors(state):
        attachments = state.knowledge_base.list_article_attachments(article_id)

    if state.json:
        emit_json(attachments)
    else:
        render.attachment_table(attachments)


@article_app.command("comment")
def add_comment(
    ctx: typer.Context,
    article_id: Annotated[str, typer.Argument(help="Article ID.")],
    message: Annotated[str, typer.Option("--message", "-m", help="Comment text.")],
) -> None:
    state = get_state(ctx)
    with handle_errors(state):
        comment = state.knowledge_base.add_article_comment(article_id, message)

    if state.json:
        emit_json(comment)
    else:
        success(f"Commented on {article_id}")


@article_app.command("comments")
def list_comments(
    ctx: typer.Context,
    article_id: Annotated[str, typer.Argument(help="Article ID.")],
) -> None:
    state = get_state(ctx)
    with handle_errors(state):
        comments = state.knowledge_base.get_article_comments(article_id)

    if state.json:
        emit_json(comments)
    else:
        render.comment_list(comments)
