"""Built-in application templates.

Each template is a small set of files rendered with Jinja2.  Variables
available to every file:

- ``project_name``: the project id (also the CMake project name)
- ``template``: the template key
"""

from __future__ import annotations

import jinja2

_CMAKELISTS = """\
# SPDX-License-Identifier: Apache-2.0

cmake_minimum_required(VERSION 3.20.0)
find_package(Zephyr REQUIRED HINTS $ENV{ZEPHYR_BASE})
project({{ project_name }})

target_sources(app PRIVATE src/main.c)
"""

_BLINKY_CONF = """\
CONFIG_GPIO=y
"""

_BLINKY_MAIN = """\
/*
 * {{ project_name }}: toggles the board's led0 alias once per second.
 */

#include <stdio.h>
#include <zephyr/kernel.h>
#include <zephyr/drivers/gpio.h>

#define SLEEP_TIME_MS 1000
#define LED0_NODE DT_ALIAS(led0)

static const struct gpio_dt_spec led = GPIO_DT_SPEC_GET(LED0_NODE, gpios);

int main(void)
{
	bool led_state = true;

	if (!gpio_is_ready_dt(&led)) {
		return 0;
	}

	if (gpio_pin_configure_dt(&led, GPIO_OUTPUT_ACTIVE) < 0) {
		return 0;
	}

	while (1) {
		if (gpio_pin_toggle_dt(&led) < 0) {
			return 0;
		}

		led_state = !led_state;
		printf("LED state: %s\\n", led_state ? "ON" : "OFF");
		k_msleep(SLEEP_TIME_MS);
	}
	return 0;
}
"""

_HELLO_CONF = """\
CONFIG_PRINTK=y
"""

_HELLO_MAIN = """\
#include <stdio.h>

int main(void)
{
	printf("Hello World from {{ project_name }}! %s\\n", CONFIG_BOARD_TARGET);
	return 0;
}
"""

_MINIMAL_CONF = """\
# Add Kconfig options for {{ project_name }} here.
"""

_MINIMAL_MAIN = """\
#include <zephyr/kernel.h>

int main(void)
{
	return 0;
}
"""

PROJECT_TEMPLATES: dict[str, dict[str, str]] = {
    "blinky": {"CMakeLists.txt": _CMAKELISTS, "prj.conf": _BLINKY_CONF, "src/main.c": _BLINKY_MAIN},
    "hello_world": {"CMakeLists.txt": _CMAKELISTS, "prj.conf": _HELLO_CONF, "src/main.c": _HELLO_MAIN},
    "minimal": {"CMakeLists.txt": _CMAKELISTS, "prj.conf": _MINIMAL_CONF, "src/main.c": _MINIMAL_MAIN},
}

_env = jinja2.Environment(  # noqa: S701
    autoescape=False,
    keep_trailing_newline=True,
    undefined=jinja2.StrictUndefined,
)


def render_project(template: str, project_name: str) -> dict[str, str]:
    """Render every file of *template*; returns ``{relative_path: content}``."""
    try:
        files = PROJECT_TEMPLATES[template]
    except KeyError:
        msg = f"Unknown project template '{template}'"
        raise ValueError(msg) from None

    template_vars = {"project_name": project_name, "template": template}
    return {path: _env.from_string(raw).render(**template_vars) for path, raw in files.items()}
