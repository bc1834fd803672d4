#!/usr/bin/env python3
"""Ad hoc query runner for the Recipe Pipeline.

Run generation and discovery queries directly against the configured store.

Usage:
    python query.py "ayam, bawang putih"
    python query.py --allergies udang --preferences halal "ayam, bawang putih"
    python query.py --difficulty easy --max-time 30 --cuisine padang "ayam, cabai"
    python query.py --debug "ayam, bawang putih"          # Show full JSON result
    python query.py --stateless "ayam, bawang putih"      # In-memory database, no cache reuse
    python query.py --similar <recipe-id>
    python query.py --alternatives "ayam, bawang putih"

Features:
- Cache-aware generation (second identical query is served from the store)
- Similar recipes by embedding, alternatives by ingredient overlap
- Debug mode to display full JSON with all fields
"""

import asyncio
import sys

from pydantic import ValidationError
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from src.models.models import GenerationRequest, GenerationResult, Recipe
from src.pipeline.factory import initialize_recipe_pipeline
from src.utils.logger import logger

console = Console()

USAGE = (
    'Usage: python query.py [--debug] [--stateless] [--allergies A,B] [--preferences P,Q] '
    '[--difficulty easy|medium|hard] [--max-time N] [--cuisine C] [--similar ID | --alternatives] "<ingredients>"'
)

VALUE_FLAGS = {
    "--allergies": "allergies",
    "--preferences": "preferences",
    "--difficulty": "difficulty",
    "--max-time": "max_time",
    "--cuisine": "cuisine",
    "--similar": "similar",
}


def render_recipe(recipe: Recipe) -> str:
    """Format a recipe as markdown."""
    lines = [
        f"## {recipe.title}",
        f"*{recipe.description}*" if recipe.description else "",
        f"**Waktu:** {recipe.estimated_time} menit · **Tingkat:** {recipe.difficulty.value} · `{recipe.id}`",
        "",
        "**Bahan:**",
        *(f"- {i}" for i in recipe.ingredients),
        "",
        "**Langkah:**",
        *(f"{n}. {s}" for n, s in enumerate(recipe.steps, start=1)),
    ]
    if recipe.safety_notes:
        lines += ["", "**Catatan keamanan:**", *(f"- ⚠️ {note}" for note in recipe.safety_notes)]
    if recipe.tags:
        lines += ["", "Tags: " + ", ".join(recipe.tags)]
    return "\n".join(lines)


def print_generation(result: GenerationResult, debug: bool) -> None:
    if debug:
        console.print_json(data=result.model_dump(mode="json"))
        return

    status = "[green]cached[/green]" if result.cached else "[cyan]generated[/cyan]"
    console.print(f"Fingerprint [bold]{result.fingerprint}[/bold] · {status} · {len(result.recipes)} recipe(s)\n")
    if not result.recipes:
        console.print("[yellow]No recipes passed the allergen filter[/yellow]")
    for recipe in result.recipes:
        console.print(Markdown(render_recipe(recipe)))
        console.print()


async def run_query(ingredients: str, options: dict, debug: bool = False, stateless: bool = False) -> None:
    """Execute a single ad hoc query and print the result."""
    database_url = "sqlite://" if stateless else None
    pipeline, recommendations = await initialize_recipe_pipeline(database_url=database_url)

    if "similar" in options:
        similar = await recommendations.find_similar_recipes(options["similar"])
        table = Table("Similarity", "Title", "ID")
        for item in similar:
            table.add_row(f"{item.similarity:.3f}", item.recipe.title, item.recipe.id)
        console.print(table if similar else "[yellow]No similar recipes (missing recipe or embedding)[/yellow]")
        return

    request = GenerationRequest(
        ingredients=ingredients,
        allergies=options.get("allergies"),
        preferences=options.get("preferences"),
        difficulty=options.get("difficulty"),
        max_time=options.get("max_time"),
        cuisine=options.get("cuisine"),
    )

    if options.get("alternatives"):
        alternatives = await recommendations.find_alternatives(
            request.ingredients, request.allergies, request.preferences
        )
        table = Table("Match %", "Title", "ID")
        for alt in alternatives:
            table.add_row(str(alt.match_score), alt.recipe.title, alt.recipe.id)
        console.print(table if alternatives else "[yellow]No alternatives found[/yellow]")
        return

    logger.info(f"Running query: {request.model_dump_json()}")
    result = await pipeline.generate(request)
    print_generation(result, debug)


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(USAGE)
        sys.exit(1)

    debug_mode = False
    stateless_mode = False
    options: dict = {}
    argv_start = 1

    while argv_start < len(sys.argv) and sys.argv[argv_start].startswith("--"):
        flag = sys.argv[argv_start]
        if flag == "--debug":
            debug_mode = True
        elif flag == "--stateless":
            stateless_mode = True
        elif flag == "--alternatives":
            options["alternatives"] = True
        elif flag in VALUE_FLAGS:
            argv_start += 1
            if argv_start >= len(sys.argv):
                print(f"Error: {flag} flag requires a value")
                sys.exit(1)
            options[VALUE_FLAGS[flag]] = sys.argv[argv_start]
        else:
            print(f"Unknown flag: {flag}")
            sys.exit(1)
        argv_start += 1

    ingredients_arg = " ".join(sys.argv[argv_start:])
    if not ingredients_arg and "similar" not in options:
        print("Error: No ingredients provided")
        print(USAGE)
        sys.exit(1)

    try:
        asyncio.run(run_query(ingredients_arg, options, debug=debug_mode, stateless=stateless_mode))
    except ValidationError as e:
        console.print(f"[red]✗ Invalid request: {e}[/red]")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("\nQuery interrupted by user.")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Query execution failed: {e}", exc_info=True)
        sys.exit(1)
