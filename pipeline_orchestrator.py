#!/usr/bin/env python3
import argparse
import json
import logging
import os
import sys

import correct_subtitles
import merge_subtitles
import split_subtitles
from common import setup_logging

REQUIRED_KEYS = ['work_dir', 'output_dir', 'cache_dir', 'steps']
ALLOWED_STEPS = ['split_subtitles', 'correct_subtitles', 'merge_subtitles']


def validate_config(config: dict) -> list:
    """Return a list of configuration problems; empty when the config is usable."""
    problems = []
    for k in REQUIRED_KEYS:
        if k not in config:
            problems.append(f'Missing required config key: {k}')
    steps = config.get('steps')
    if not steps or not isinstance(steps, list):
        problems.append('Config must define an ordered list of steps under "steps"')
        return problems

    seen = set()
    for s in steps:
        if s not in ALLOWED_STEPS:
            problems.append(f'Unknown step "{s}". Allowed: {", ".join(ALLOWED_STEPS)}')
        elif s in seen:
            problems.append(f'Duplicate step "{s}" in steps list')
        seen.add(s)
    known = [s for s in steps if s in ALLOWED_STEPS]
    if known != sorted(known, key=ALLOWED_STEPS.index):
        problems.append(f'Steps must run in this order: {", ".join(ALLOWED_STEPS)}')

    if 'split_subtitles' in steps and not config.get('input_file'):
        problems.append('input_file must be set in config when using split_subtitles')
    chunk_size = config.get('chunk_size', split_subtitles.DEFAULT_CHUNK_SIZE)
    if not isinstance(chunk_size, int) or chunk_size < 1:
        problems.append('chunk_size must be a positive integer')
    concurrency = config.get('concurrency', correct_subtitles.DEFAULT_CONCURRENCY)
    if not isinstance(concurrency, int) or concurrency < 1:
        problems.append('concurrency must be a positive integer')
    return problems


def corrected_files(output_dir: str) -> list:
    """List the {id}_corrected.srt files produced by the correction step."""
    if not os.path.isdir(output_dir):
        return []
    return [
        os.path.join(output_dir, f) for f in os.listdir(output_dir)
        if f.endswith('_corrected.srt')
    ]


def run_pipeline(config: dict) -> bool:
    """Run the configured steps in order; stop at the first failing step."""
    work_dir = config['work_dir']
    output_dir = config['output_dir']
    steps = config['steps']

    for idx, s in enumerate(steps, start=1):
        logging.info('Step %d/%d: %s', idx, len(steps), s)
        if s == 'split_subtitles':
            ok = split_subtitles.run_split_subtitles(
                input_file=config['input_file'],
                output_dir=work_dir,
                chunk_size=config.get('chunk_size', split_subtitles.DEFAULT_CHUNK_SIZE),
            )
        elif s == 'correct_subtitles':
            ok = correct_subtitles.run_correct_subtitles(
                inputs=[work_dir],
                output_dir=output_dir,
                characters=config.get('characters', []),
                movies=config.get('movies', []),
                reference_files=config.get('reference_files', []),
                cache_dir=config['cache_dir'],
                model=config.get('model'),
                concurrency=config.get('concurrency', correct_subtitles.DEFAULT_CONCURRENCY),
                review_dir=config.get('review_dir'),
            )
        else:
            merged_file = config.get('merged_file') or os.path.join(
                output_dir, merge_subtitles.DEFAULT_OUTPUT_NAME)
            ok = merge_subtitles.run_merge_subtitles(corrected_files(output_dir), merged_file)
        if not ok:
            logging.error('%s failed, aborting pipeline', s)
            return False
    return True


def main():
    """Run the subtitle pipeline according to the provided config file."""
    setup_logging(None, 'logs/pipeline_orchestrator.log')
    p = argparse.ArgumentParser(description='Pipeline orchestrator')
    p.add_argument('--config', required=True, help='Path to pipeline-config.json')
    args = p.parse_args()

    try:
        with open(args.config, encoding='utf-8') as f:
            config = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logging.error('Failed to load config %s: %s', args.config, e)
        sys.exit(1)

    problems = validate_config(config)
    for problem in problems:
        logging.error(problem)
    if problems:
        sys.exit(1)

    for d in (config['work_dir'], config['output_dir'], config['cache_dir']):
        os.makedirs(d, exist_ok=True)

    if not run_pipeline(config):
        sys.exit(1)


if __name__ == '__main__':
    main()
